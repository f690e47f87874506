"""Names of generated and expected conversion functions."""

import re

from convgen.core.types import Kind, TypeDescriptor

CONVERT_PREFIX = "Convert_"
INTERNAL_PREFIX = "auto"

_NON_IDENTIFIER = re.compile(r"[^A-Za-z0-9_]")


def package_local_name(package_path: str) -> str:
    """Last path segment of a package, reduced to identifier characters."""
    segment = package_path.rstrip("/").rsplit("/", 1)[-1]
    return _NON_IDENTIFIER.sub("", segment)


def public_name(t: TypeDescriptor) -> str:
    """
    Name fragment for ``t`` as used inside conversion function names.

    Declared types are prefixed with the last segment of their package
    (``v1_Pod``); builtins keep their bare name; anonymous composites are
    spelled out (``Pointer_v1_Pod``, ``Slice_string``, ``Map_string_To_int``).
    """
    if t.kind == Kind.POINTER:
        return f"Pointer_{public_name(t.elem)}"
    if t.kind == Kind.SLICE:
        return f"Slice_{public_name(t.elem)}"
    if t.kind == Kind.ARRAY:
        return f"Array_{public_name(t.elem)}"
    if t.kind == Kind.CHAN:
        return f"Chan_{public_name(t.elem)}"
    if t.kind == Kind.MAP:
        return f"Map_{public_name(t.key)}_To_{public_name(t.elem)}"
    if not t.package:
        if t.kind == Kind.INTERFACE:
            return "Interface"
        if t.kind == Kind.FUNC:
            return "Func"
        return t.name.name
    return f"{package_local_name(t.package)}_{t.name.name}"


def conversion_function_name(in_type: TypeDescriptor, out_type: TypeDescriptor) -> str:
    """``Convert_<in>_To_<out>``: the public conversion function for a pair."""
    return f"{CONVERT_PREFIX}{public_name(in_type)}_To_{public_name(out_type)}"


def internal_function_name(in_type: TypeDescriptor, out_type: TypeDescriptor) -> str:
    """``autoConvert_<in>_To_<out>``: the always-generated body of a conversion."""
    return INTERNAL_PREFIX + conversion_function_name(in_type, out_type)
