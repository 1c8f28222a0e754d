# src/pubrules/rules/dummy.py
"""Trivial presence checks, used to exercise the engine end to end."""
from pubrules.core.rule_registry import register_rule


@register_rule("dummy/dahut", codes=["not-found"])
def check_dahut(doc, config, resolver, report):
    """Rule: the document contains a <dahut> element."""
    if not doc.structure.exists("dahut"):
        report.error("not-found", element="dahut")


@register_rule("dummy/h1", codes=["not-found"])
def check_h1(doc, config, resolver, report):
    if not doc.structure.exists("h1"):
        report.error("not-found", element="h1")


@register_rule("dummy/h2-foo", codes=["not-found"])
def check_h2_foo(doc, config, resolver, report):
    """Rule: some <h2> reads 'Foo'."""
    for h2 in doc.structure.select("h2"):
        if h2.get_text(" ", strip=True).lower() == "foo":
            return
    report.error("not-found", element="h2", text="Foo")
