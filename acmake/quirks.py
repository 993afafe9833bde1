"""Per-package remediation steps for upstreams with inconsistent target names.

A quirk is data: lists of steps keyed by the stage of the native search they
run in. Each step is called as step(resolver, name).
"""
import os

from .cli_logger import logger
from .registry import Target


class Quirk:
    def __init__(self, before=None, after=None, on_found=None):
        self.steps = {
            "before": list(before or []),
            "after": list(after or []),
            "on_found": list(on_found or []),
        }

    def apply(self, stage, resolver, name):
        for step in self.steps[stage]:
            step(resolver, name)


def hint_dir(variable, path, when_exists):
    """Point a <Package>_DIR variable at a known install when it exists."""
    def step(resolver, name):
        if os.path.exists(when_exists) and not resolver.scope.get(variable):
            logger.debug(f"[hint] {variable} = {path}")
            resolver.scope.set(variable, path)
    return step


def retry_config_mode(target):
    """Re-run the search in config mode when a module search missed target."""
    def step(resolver, name):
        if not resolver.scope.is_package_found(name) or resolver.targets.exists(target):
            return
        logger.debug(f"[fixup] {target} missing after module search; retrying {name} in config mode")
        if not resolver.finder.find_package(name, resolver.evaluator, mode="config"):
            logger.warning(f"{name} was found but its config package does not define {target}.")
    return step


def alias_first_existing(alias, candidates):
    def step(resolver, name):
        targets = resolver.targets
        for candidate in candidates:
            if targets.exists(candidate) and not targets.exists(alias):
                logger.debug(f"[fixup] aliasing {alias} -> {candidate}")
                targets.add_alias(alias, candidate)
                return
    return step


def imported_fallback(target, location, include_dir, alias, unless=()):
    """Last resort: declare the library at a conventional install path."""
    def step(resolver, name):
        targets = resolver.targets
        if targets.exists(alias) or targets.exists(target) or any(targets.exists(u) for u in unless):
            return
        logger.debug(f"[fixup] creating IMPORTED target {target} and alias {alias}")
        targets.add(Target(target, kind="UNKNOWN", include_dirs=include_dir,
                           location=location, imported=True))
        targets.add_alias(alias, target)
    return step


QUIRKS = {
    "OpenSSL": Quirk(
        before=[hint_dir("OpenSSL_DIR", "/opt/homebrew/opt/openssl/lib/cmake/OpenSSL",
                         when_exists="/opt/homebrew/opt/openssl")],
        after=[retry_config_mode("OpenSSL::Crypto")],
    ),
    "libjwt": Quirk(
        on_found=[
            alias_first_existing("libjwt::libjwt", ["LibJWT::jwt", "jwt"]),
            imported_fallback("jwt", "/usr/local/opt/libjwt/lib/libjwt.dylib",
                              "/usr/local/opt/libjwt/include",
                              alias="libjwt::libjwt", unless=["LibJWT::jwt"]),
        ],
    ),
}
