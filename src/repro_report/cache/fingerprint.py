"""Computation fingerprints.

A fingerprint is SHA-256 over:
- the literal source text of the computation (not its runtime values)
- a canonical byte encoding of the caller's declared dependencies

Values captured by a closure are NOT part of the fingerprint. Two computations
with the same source text but different closed-over values collide, so every
external value the result depends on has to be listed in `deps`.

Dependencies are encoded structurally (dict keys sorted, sets sorted, arrays by
dtype/shape/bytes, other objects by class name and attributes) so the same
inputs hash the same in any process, whatever PYTHONHASHSEED is. Values with no
structural encoding are rejected instead of being pickled.
"""

from __future__ import annotations
from dataclasses import fields, is_dataclass
from typing import Any, Callable, List, Union
import datetime
import decimal
import enum
import fractions
import functools
import inspect
import os
import textwrap
import types

import numpy as np
import pandas as pd

from ..errors import UnsupportedInputError
from ..utils.hashing import sha256_hex

Computation = Union[Callable[[], Any], str]


def _code_object_repr(code: types.CodeType) -> str:
    # Everything that defines behaviour; file names and line numbers are left out
    consts = []
    for c in code.co_consts:
        # Constants can be frozensets, whose repr order depends on the hash seed
        consts.append(_code_object_repr(c) if isinstance(c, types.CodeType) else canonical_bytes(c).hex())
    return "|".join([
        code.co_name,
        code.co_code.hex(),
        ",".join(consts),
        ",".join(code.co_names),
        ",".join(code.co_varnames),
        ",".join(code.co_freevars),
    ])


def code_repr(computation: Computation) -> str:
    """Literal representation of a computation's code."""
    if isinstance(computation, str):
        return textwrap.dedent(computation).strip()
    if isinstance(computation, functools.partial):
        args = canonical_bytes([list(computation.args), dict(computation.keywords)]).hex()
        return f"{code_repr(computation.func)}\npartial:{args}"

    func = inspect.unwrap(computation)
    if not (inspect.isfunction(func) or inspect.ismethod(func)) and callable(func):
        func = type(func).__call__
    code = getattr(func, "__code__", None)
    if code is not None and code.co_name == "<lambda>":
        # getsource() returns the whole line, which may hold other lambdas
        return "lambda:" + _code_object_repr(code)
    try:
        return textwrap.dedent(inspect.getsource(func)).strip()
    except (OSError, TypeError):
        if code is None:
            raise TypeError(f"Cannot derive code for {computation!r}; pass a function or source text")
        return _code_object_repr(code)


def _qualified_name(obj: Any) -> bytes:
    name = getattr(obj, "__qualname__", None) or obj.__name__
    return f"{getattr(obj, '__module__', None)}.{name}".encode("utf-8")


def _encode(value: Any, out: List[bytes]) -> None:
    if value is None:
        out.append(b"N;")
    elif value is Ellipsis:
        out.append(b"Z;")
    elif isinstance(value, enum.Enum):
        out.append(b"M" + _qualified_name(type(value)) + b":")
        _encode(value.name, out)
    elif isinstance(value, bool):
        out.append(b"B1;" if value else b"B0;")
    elif isinstance(value, int):
        out.append(b"I%d;" % value)
    elif isinstance(value, float):
        out.append(b"F" + value.hex().encode("ascii") + b";")
    elif isinstance(value, complex):
        out.append(b"C" + value.real.hex().encode("ascii") + b"," + value.imag.hex().encode("ascii") + b";")
    elif isinstance(value, str):
        data = value.encode("utf-8")
        out.append(b"S%d:" % len(data) + data)
    elif isinstance(value, (bytes, bytearray, memoryview)):
        data = bytes(value)
        out.append(b"Y%d:" % len(data) + data)
    elif isinstance(value, slice):
        out.append(b"Q")
        _encode((value.start, value.stop, value.step), out)
    elif isinstance(value, (datetime.date, datetime.time, datetime.timedelta, decimal.Decimal, fractions.Fraction)):
        # Value types whose repr is exact and seed-independent
        out.append(b"R" + repr(value).encode("utf-8") + b";")
    elif isinstance(value, os.PathLike):
        out.append(b"H")
        _encode(os.fspath(value), out)
    elif isinstance(value, (list, tuple)):
        out.append(b"L%d[" % len(value) if isinstance(value, list) else b"T%d[" % len(value))
        for item in value:
            _encode(item, out)
        out.append(b"]")
    elif isinstance(value, dict):
        out.append(b"D%d{" % len(value))
        for key_bytes, item in sorted(((canonical_bytes(k), v) for k, v in value.items()), key=lambda kv: kv[0]):
            out.append(key_bytes)
            _encode(item, out)
        out.append(b"}")
    elif isinstance(value, (set, frozenset)):
        out.append(b"E%d{" % len(value))
        out.extend(sorted(canonical_bytes(v) for v in value))
        out.append(b"}")
    elif isinstance(value, np.ndarray):
        if value.dtype.hasobject:
            out.append(b"AO" + repr(value.shape).encode("ascii"))
            _encode(value.tolist(), out)
        else:
            out.append(b"A" + value.dtype.str.encode("ascii") + repr(value.shape).encode("ascii") + b":")
            out.append(np.ascontiguousarray(value).tobytes())
    elif isinstance(value, np.generic):
        _encode(value.item(), out)
    elif isinstance(value, (pd.DataFrame, pd.Series, pd.Index)):
        out.append(b"P" + type(value).__name__.encode("ascii") + b":")
        if isinstance(value, pd.DataFrame):
            _encode([str(c) for c in value.columns], out)
            _encode([str(t) for t in value.dtypes], out)
        else:
            _encode(str(value.dtype), out)
        out.append(pd.util.hash_pandas_object(value, index=not isinstance(value, pd.Index)).to_numpy().tobytes())
    elif is_dataclass(value) and not isinstance(value, type):
        out.append(b"K" + type(value).__qualname__.encode("utf-8") + b":")
        _encode({f.name: getattr(value, f.name) for f in fields(value)}, out)
    elif inspect.isfunction(value) or inspect.ismethod(value) or isinstance(value, functools.partial):
        out.append(b"X:")
        _encode(code_repr(value), out)
    elif isinstance(value, type) or (callable(value) and hasattr(value, "__name__")):
        # Classes and builtins are identified by name
        out.append(b"G" + _qualified_name(value) + b";")
    else:
        _encode_object(value, out)


def _slot_values(value: Any) -> dict:
    slots = {}
    for cls in type(value).__mro__:
        names = getattr(cls, "__slots__", ())
        for name in ([names] if isinstance(names, str) else names):
            if name not in ("__dict__", "__weakref__") and hasattr(value, name):
                slots[name] = getattr(value, name)
    return slots


def _encode_object(value: Any, out: List[bytes]) -> None:
    """Plain objects: class name plus instance attributes (slots, or pickle state for C types)."""
    state = getattr(value, "__dict__", None)
    if not isinstance(state, dict):
        state = _slot_values(value) or None
    if state is None:
        getstate = getattr(value, "__getstate__", None)
        state = getstate() if getstate is not None else None
    if state is None:
        raise UnsupportedInputError(
            f"Cannot fingerprint a dependency of type {type(value).__qualname__}; "
            "pass its defining values (numbers, strings, containers, arrays, frames) instead"
        )
    out.append(b"O" + _qualified_name(type(value)) + b":")
    _encode(state, out)


def canonical_bytes(value: Any) -> bytes:
    out: List[bytes] = []
    _encode(value, out)
    return b"".join(out)


def fingerprint(computation: Computation, deps: Any = None) -> str:
    """Deterministic digest of (code text, declared dependencies)."""
    return sha256_hex(
        b"code:" + code_repr(computation).encode("utf-8") + b"\x00deps:" + canonical_bytes(deps)
    )
