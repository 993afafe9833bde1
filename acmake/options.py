import os

from .cli_logger import logger
from .utils.command_executor import run_shell_command

LIBRARY_DEFAULTS = {
    "debug": False,
    "address_sanitizer": False,
    "shared_build": False,
    "static_build": True,
    "debug_build": True,
    "build_testing": False,
    "enable_code_coverage": False,
    "enable_clang_tidy": False,
}

# executables link against the debug variant unless told otherwise
BINARY_DEFAULTS = dict(LIBRARY_DEFAULTS, static_build=False)

VARIANT_FLAGS = {
    "debug": ["-g", "-O0"],
    "static": ["-O3"],
    "shared": ["-O3"],
}

STYLE_FLAGS = {
    "shared": ["-O2"],
    "static": ["-O3"],
    "debug": ["-g", "-O0"],
}


def _as_bool(value):
    if isinstance(value, str):
        return value.strip().upper() in ("1", "ON", "YES", "TRUE", "Y")
    return bool(value)


class BuildOptions:
    """The on/off switches of a library or binary build."""

    def __init__(self, kind="library", **overrides):
        defaults = BINARY_DEFAULTS if kind == "binary" else LIBRARY_DEFAULTS
        self.kind = kind
        for key, value in defaults.items():
            setattr(self, key, _as_bool(overrides.pop(key, value)))
        if overrides:
            raise ValueError(f"Unknown build options: {', '.join(sorted(overrides))}")

    @classmethod
    def from_config(cls, conf, kind="library"):
        options = {k: v for k, v in conf.get("options", {}).items() if k in LIBRARY_DEFAULTS}
        ignored = set(conf.get("options", {})) - set(options)
        for key in sorted(ignored):
            logger.warning(f"Ignoring unknown option '{key}' in [options].")
        return cls(kind=kind, **options)

    @property
    def lib_style(self):
        if self.shared_build:
            return "shared"
        if self.static_build:
            return "static"
        return "debug"

    def library_variants(self):
        """Variants a library build produces, with their private compile flags."""
        variants = []
        if self.debug_build:
            variants.append(("debug", VARIANT_FLAGS["debug"]))
        if self.static_build:
            variants.append(("static", VARIANT_FLAGS["static"]))
        if self.shared_build:
            variants.append(("shared", VARIANT_FLAGS["shared"]))
        return variants

    def default_variant(self):
        """The variant `<project>` and `<project>::<project>` alias."""
        if self.static_build:
            return "static"
        if self.shared_build:
            return "shared"
        if self.debug_build:
            return "debug"
        return None

    def compile_options(self):
        options = list(STYLE_FLAGS[self.lib_style]) if self.kind == "binary" else []
        if self.address_sanitizer:
            options.append("-fsanitize=address")
        return options

    @property
    def clang_tidy(self):
        return "clang-tidy" if self.enable_clang_tidy else None

    def to_dict(self):
        return {key: getattr(self, key) for key in LIBRARY_DEFAULTS}


def compiler_accepts(compiler, flags):
    """True when compiler can compile an empty C file with flags."""
    _, _, returncode = run_shell_command(
        [compiler, *flags, "-x", "c", "-c", "-o", os.devnull, "-"],
        input_data="int main(void) { return 0; }\n",
    )
    return returncode == 0


def select_c_standard(compiler="cc"):
    """23 when the compiler accepts -std=c23, 17 otherwise."""
    if compiler_accepts(compiler, ["-std=c23"]):
        return 23
    logger.debug(f"{compiler} does not accept -std=c23; using C17")
    return 17
