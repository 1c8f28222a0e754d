# tests/core/test_rule_registry.py
import pytest

from pubrules.core.errors import UnknownRuleError
from pubrules.core.rule import FunctionRule, Rule, split_rule_id
from pubrules.core.rule_registry import RuleRegistry, get_default_registry


def test_split_rule_id():
    assert split_rule_id("headers/dl") == ("headers", "dl")
    for bad in ("headers", "/dl", "headers/", "a/b/c"):
        with pytest.raises(ValueError):
            split_rule_id(bad)


def test_decorator_registers_functions_and_classes():
    registry = RuleRegistry()

    @registry.rule("demo/func", codes=["b", "a", "a"])
    def check(doc, config, resolver, report):
        """Rule: demo."""

    @registry.rule("demo/klass", codes=["x"])
    class Check(Rule):
        codes = ("y",)

        async def run(self, doc, config, resolver, report):
            pass

    func_rule = registry.get("demo/func")
    assert isinstance(func_rule, FunctionRule)
    assert func_rule.codes == ("a", "b")
    assert func_rule.category == "demo" and func_rule.name == "func"
    assert not func_rule.is_async

    class_rule = registry.get("demo/klass")
    assert class_rule.codes == ("x", "y")
    assert class_rule.is_async

    assert "demo/func" in registry
    assert len(registry) == 2
    assert registry.ids("demo") == ["demo/func", "demo/klass"]
    assert registry.all_codes() == ["demo.func.a", "demo.func.b", "demo.klass.x", "demo.klass.y"]


def test_unknown_rule_raises():
    with pytest.raises(UnknownRuleError) as excinfo:
        RuleRegistry().get("headers/nope")
    assert excinfo.value.rule_id == "headers/nope"


def test_discover_missing_package_is_logged_not_raised():
    registry = RuleRegistry()
    assert registry.discover("pubrules.no_such_rules") is registry
    assert len(registry) == 0


def test_default_registry_loads_bundled_rules():
    registry = get_default_registry()
    for rule_id in ("dummy/dahut", "headers/div-head", "headers/dl", "links/linkchecker", "sotd/pp"):
        assert rule_id in registry
    assert registry.get("links/linkchecker").is_async
    assert "headers.dl.link-diff" in registry.all_codes()
    # discovery is idempotent
    count = len(registry)
    get_default_registry()
    assert len(registry) == count
