"""Infers structural types from JSON samples and JSON Schema documents.

The public names are resolved on first access so that `import shapify` does
not pull in jinja2 or jsonpointer until they are needed.
"""

import importlib

mod = "shapify"


class LazyLoader:
    """
    Resolves public names to the module attribute that implements them.

    Names missing from the table are treated as submodules of the package.
    """

    def __init__(self, mappings):
        self._modules = {}
        self._mappings = mappings

    def _load_module(self, module_name):
        module = self._modules.get(module_name)
        if module is None:
            module = importlib.import_module(module_name)
            self._modules[module_name] = module
        return module

    def __getattr__(self, item):
        target = self._mappings.get(item)
        if target is None:
            try:
                return self._load_module(f"{mod}.{item}")
            except ModuleNotFoundError as e:
                if e.name != f"{mod}.{item}":
                    raise
                raise AttributeError(f"module {mod!r} has no attribute {item!r}") from e
        module_name, attr_name = target
        return getattr(self._load_module(module_name), attr_name)

    def names(self):
        return sorted(self._mappings)


# public name -> (module, attribute)
_mappings = {
    "infer_from_samples": (f"{mod}.jsoninfer", "infer_from_samples"),
    "infer_from_schema": (f"{mod}.jsonsinfer", "infer_from_schema"),
    "infer_from_schema_set": (f"{mod}.jsonsinfer", "infer_from_schema_set"),
    "optimize": (f"{mod}.optimizer", "optimize"),
    "Optimizer": (f"{mod}.optimizer", "Optimizer"),
    "convert_shape_to_python": (f"{mod}.shapetopython", "convert_shape_to_python"),
    "ShapeToPython": (f"{mod}.shapetopython", "ShapeToPython"),
    "Schema": (f"{mod}.typegraph", "Schema"),
    "TypeGraph": (f"{mod}.typegraph", "TypeGraph"),
    "TypeKind": (f"{mod}.typegraph", "TypeKind"),
    "ShapifyError": (f"{mod}.typegraph", "ShapifyError"),
    "EmptyInputError": (f"{mod}.typegraph", "EmptyInputError"),
    "DanglingReferenceError": (f"{mod}.typegraph", "DanglingReferenceError"),
    "SchemaParseError": (f"{mod}.typegraph", "SchemaParseError"),
    "NestingTooDeepError": (f"{mod}.typegraph", "NestingTooDeepError"),
}

_lazy_loader = LazyLoader(_mappings)

__all__ = _lazy_loader.names()


def __getattr__(name):
    return getattr(_lazy_loader, name)


def __dir__():
    return __all__
