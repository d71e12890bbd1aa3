"""Type-based dispatch for tree visitors.

A TypeDispatcher subclass maps node classes to handler methods. Calling the
dispatcher with a node selects the handler registered for the node's class,
or for the nearest registered base class in its MRO, and caches the choice.
The printer and the def/use visitor in boogieman.language.boogie are built
on this.
"""

__all__ = [
    "TypeDispatcher",
    "defaultdispatch",
    "dispatch",
    "TypeDispatchError",
    "TypeDispatchDeclarationError",
]

import inspect


class TypeDispatchError(Exception):
    """Raised when a dispatcher is called with a type it cannot handle."""
    pass


class TypeDispatchDeclarationError(Exception):
    """Raised when a dispatcher class declares its handlers incorrectly."""
    pass


def flattenTypesInto(l, result):
    for child in l:
        if isinstance(child, (list, tuple)):
            flattenTypesInto(child, result)
        else:
            if not isinstance(child, type):
                raise TypeDispatchDeclarationError(
                    "Expected a type, got %r instead." % child
                )
            result.append(child)


def dispatch(*types):
    """Mark a method as the handler for the given types.

    Args:
        *types: Classes (or nested tuples of classes) handled by the method.

    Returns:
        Decorator recording the dispatch metadata on the function.
    """
    def dispatchF(f):
        def dispatchWrap(*args, **kargs):
            return f(*args, **kargs)

        dispatchWrap.__original__ = f
        dispatchWrap.__dispatch__ = []
        flattenTypesInto(types, dispatchWrap.__dispatch__)
        return dispatchWrap

    return dispatchF


def defaultdispatch(f):
    """Mark a method as the fallback handler."""
    def defaultWrap(*args, **kargs):
        return f(*args, **kargs)

    defaultWrap.__original__ = f
    defaultWrap.__dispatch__ = (None,)
    return defaultWrap


def dispatch__call__(self, p, *args):
    t = type(p)
    table = self.__typeDispatchTable__

    func = table.get(t)

    if func is None:
        # Resolved once per concrete class, then cached.
        for supercls in t.mro():
            func = table.get(supercls)
            if func is not None:
                break

        if func is None:
            func = table.get(None)

        table[t] = func

    return func(self, p, *args)


def exceptionDefault(self, node, *args):
    raise TypeDispatchError("%r cannot handle %r\n%r" % (type(self), type(node), node))


def inlineAncestor(t, lut):
    if hasattr(t, "__typeDispatchTable__"):
        for k, v in t.__typeDispatchTable__.items():
            if k not in lut:
                lut[k] = v


class typedispatcher(type):
    """Metaclass building the dispatch table of a TypeDispatcher class.

    Handlers declared on the class take precedence over inherited ones. A
    class that ends up without a default handler is a declaration error.
    """
    def __new__(self, name, bases, d):
        lut = {}
        restore = {}

        for k, v in d.items():
            if hasattr(v, "__dispatch__") and hasattr(v, "__original__"):
                for t in v.__dispatch__:
                    if t in lut:
                        raise TypeDispatchDeclarationError(
                            "%s has declared with multiple handlers for type %s"
                            % (name, t.__name__)
                        )
                    lut[t] = v.__original__
                restore[k] = v.__original__

        d.update(restore)

        for base in bases:
            for t in inspect.getmro(base):
                inlineAncestor(t, lut)

        if None not in lut:
            raise TypeDispatchDeclarationError("%s has no default dispatch" % (name,))

        d["__typeDispatchTable__"] = lut

        return type.__new__(self, name, bases, d)


class TypeDispatcher(object, metaclass=typedispatcher):
    """Base class for dispatchers keyed on the type of the first argument.

    Example:
        >>> class Kind(TypeDispatcher):
        ...     @dispatch(int)
        ...     def visitInt(self, obj):
        ...         return "integer"
        ...     @defaultdispatch
        ...     def visitOther(self, obj):
        ...         return "other"
        >>> Kind()(42)
        'integer'
    """
    __dispatch__ = dispatch__call__
    __call__ = dispatch__call__
    exceptionDefault = defaultdispatch(exceptionDefault)
