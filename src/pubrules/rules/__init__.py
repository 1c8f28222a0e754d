"""
Bundled rules, one module per category (headers, style, links...).

Modules register themselves with ``register_rule``; importing the package
tree (RuleRegistry.discover) is what makes them available.
"""
