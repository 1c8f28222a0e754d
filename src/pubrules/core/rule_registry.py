# src/pubrules/core/rule_registry.py
import importlib
import inspect
import logging
import pkgutil
from typing import Callable, Dict, Iterable, List, Optional, Union

from pubrules.core.errors import UnknownRuleError
from pubrules.core.rule import FunctionRule, Rule, split_rule_id

logger = logging.getLogger(__name__)

RULES_PACKAGE = "pubrules.rules"


class RuleRegistry:
    """
    Maps stable rule ids ('category/name') to Rule instances.

    The default registry is populated at start-up by importing every module
    of the `pubrules.rules` package; each module registers its rules with the
    `register_rule` decorator. The orchestrator only ever resolves ids
    through a registry.
    """

    def __init__(self):
        self._rules: Dict[str, Rule] = {}
        self._discovered: set = set()

    def register(self, rule: Rule) -> Rule:
        split_rule_id(rule.rule_id)
        if rule.rule_id in self._rules and self._rules[rule.rule_id] is not rule:
            logger.warning("Rule '%s' registered twice; keeping the latest definition.", rule.rule_id)
        self._rules[rule.rule_id] = rule
        logger.debug("Registered rule '%s'", rule.rule_id)
        return rule

    def rule(self, rule_id: str, codes: Iterable[str] = (), explicit_done: bool = False) -> Callable:
        """
        Decorator registering a check function or a Rule subclass.

            @register_rule("headers/div-head", codes=["not-found"])
            def check_div_head(doc, config, resolver, report): ...

        With explicit_done=True the rule only settles on report.done().
        """
        def decorator(target: Union[Callable, type]):
            if inspect.isclass(target) and issubclass(target, Rule):
                instance = target()
                instance.rule_id = rule_id
                instance.codes = tuple(sorted(set(codes) | set(target.codes)))
                instance.explicit_done = explicit_done or target.explicit_done
                self.register(instance)
            else:
                self.register(FunctionRule(rule_id, target, codes, explicit_done=explicit_done))
            return target
        return decorator

    def get(self, rule_id: str) -> Rule:
        try:
            return self._rules[rule_id]
        except KeyError:
            raise UnknownRuleError(rule_id) from None

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def ids(self, category: Optional[str] = None) -> List[str]:
        return sorted(r for r in self._rules if category is None or r.startswith(f"{category}/"))

    def all_codes(self) -> List[str]:
        """Every 'category.rule.key' the registered rules declare."""
        codes = set()
        for rule in self._rules.values():
            category, name = split_rule_id(rule.rule_id)
            codes.update(f"{category}.{name}.{code}" for code in rule.codes)
        return sorted(codes)

    def discover(self, package: str = RULES_PACKAGE) -> "RuleRegistry":
        """Imports every module below `package` so their decorators run. Idempotent."""
        if package in self._discovered:
            return self

        try:
            pkg = importlib.import_module(package)
        except ImportError as e:
            logger.error("Could not find rules package %s: %s", package, e)
            return self

        for _, full_name, _ in pkgutil.walk_packages(pkg.__path__, prefix=f"{package}."):
            try:
                importlib.import_module(full_name)
            except Exception as e:
                logger.error("Error loading rule module %s: %s", full_name, e, exc_info=True)

        self._discovered.add(package)
        logger.debug("Discovered %d rules from %s", len(self._rules), package)
        return self


default_registry = RuleRegistry()
register_rule = default_registry.rule


def get_default_registry() -> RuleRegistry:
    """The process-wide registry, with the bundled rules loaded."""
    return default_registry.discover()
