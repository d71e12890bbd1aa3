"""
Generic AST node framework.

Node classes declare their child slots with ``__fields__``; the ``astnode``
metaclass turns the declarations into field descriptors and properties, in
the manner of a field-description metaclass:

    class BinaryExpression(Expression):
        __fields__ = "lhs", "op", "rhs"

    class Block(BoogieNode):
        __fields__ = "names*", "statements*"

A trailing ``*`` declares an ordered sequence slot, a trailing ``?`` an
optional scalar slot. Slots may hold nodes or plain values (strings,
integers, booleans); only nodes take part in linking and traversal.

**Ownership:**
A parent owns its children through its slots. The ``parent`` back-reference
is a non-owning navigation aid kept consistent by the mutation primitives:
a node has at most one parent, and a node reachable from the root sits in
exactly one slot of exactly one parent.

**Mutation primitives:**
- ``insert_children(slot, where, *nodes)`` and its shorthands
  ``prepend_children``, ``append_children``, ``replace_children``
- ``insert_siblings(where, *nodes)`` and its shorthands ``insert_before``,
  ``insert_after``, ``replace_with``, ``remove``
- ``link(parent)`` / ``unlink()``, which notify the registered observers

**Traversal:**
``enumerate()`` is a lazy pre-order walk that snapshots each sequence slot
before descending into it, so passes may insert siblings of the node they
are looking at without disturbing the walk.
"""

import contextlib
import enum

from boogieman.application.errors import StructuralError

__all__ = [
    "ASTNode",
    "Field",
    "LINK",
    "UNLINK",
    "Where",
    "observing",
]

LINK = "link"
UNLINK = "unlink"


class Where(enum.Enum):
    """Position of an insertion relative to existing content."""
    BEFORE = "before"
    AFTER = "after"
    INPLACE = "inplace"


class Field(object):
    """Descriptor of one child slot.

    Attributes:
        name: Public slot name.
        internalname: Instance attribute holding the slot's content.
        optional: Scalar slot that may be empty.
        repeated: Sequence slot.
    """
    __slots__ = "name", "internalname", "optional", "repeated"

    def __init__(self, name, optional=False, repeated=False):
        self.name = name
        self.internalname = "_" + name
        self.optional = optional
        self.repeated = repeated

    def __repr__(self):
        suffix = "*" if self.repeated else "?" if self.optional else ""
        return "Field(%s%s)" % (self.name, suffix)


def parseField(desc):
    if desc.endswith("*"):
        return Field(desc[:-1], repeated=True)
    elif desc.endswith("?"):
        return Field(desc[:-1], optional=True)
    else:
        return Field(desc)


def makeProperty(field):
    internal = field.internalname

    if field.repeated:
        def getter(self):
            return tuple(getattr(self, internal))

        def setter(self, values):
            self.insert_children(field.name, Where.INPLACE, *values)
    else:
        def getter(self):
            return getattr(self, internal)

        def setter(self, value):
            if value is None:
                self._clearScalar(field)
            else:
                self.insert_children(field.name, Where.INPLACE, value)

    return property(getter, setter, doc="Child slot %r." % field.name)


class astnode(type):
    """Metaclass collecting the field declarations of a node class.

    Fields of base classes come first, in declaration order, followed by the
    class's own ``__fields__``.
    """
    def __new__(self, name, bases, d):
        own = d.get("__fields__", ())
        if isinstance(own, str):
            own = own.split()

        fields = []
        for base in bases:
            for field in getattr(base, "__allfields__", ()):
                if field.name not in [f.name for f in fields]:
                    fields.append(field)

        for desc in own:
            field = parseField(desc)
            if field.name in [f.name for f in fields]:
                raise TypeError("%s redeclares field %r" % (name, field.name))
            fields.append(field)
            d[field.name] = makeProperty(field)

        d["__allfields__"] = tuple(fields)
        d["__fieldmap__"] = {field.name: field for field in fields}

        return type.__new__(self, name, bases, d)


@contextlib.contextmanager
def observing(observer):
    """Register an observer of link/unlink events for the duration of a block.

    The observer's ``notify(event, parent, node)`` is called with ``LINK`` or
    ``UNLINK`` for every attach and detach. Registrations nest: an observer
    registered by several blocks stays registered until the last one exits,
    and is notified once per event.
    """
    ASTNode.observers.append(observer)
    try:
        yield observer
    finally:
        ASTNode.observers.remove(observer)


def notifyObservers(event, parent, node):
    """Send one event to every registered observer, once per observer."""
    notified = set()
    for observer in list(ASTNode.observers):
        if id(observer) not in notified:
            notified.add(id(observer))
            observer.notify(event, parent, node)


class ASTNode(object, metaclass=astnode):
    """Base class of every tree node.

    Attributes:
        attributes: Annotation name -> list of argument nodes or strings.
            Not part of the child traversal.
        token: Source token the node was built from, if any.

    Class attributes:
        observers: Objects notified of link/unlink events.
        __references__: Names of non-owning references copied by identity.
    """
    __fields__ = ()
    __references__ = ()

    observers = []

    def __init__(self, *args, attributes=None, token=None, **kargs):
        fields = self.__allfields__
        if len(args) > len(fields):
            raise TypeError("%s takes at most %d positional fields"
                            % (type(self).__name__, len(fields)))

        values = dict(zip([field.name for field in fields], args))
        for key, value in kargs.items():
            if key in values:
                raise TypeError("%s got multiple values for field %r"
                                % (type(self).__name__, key))
            if key not in self.__fieldmap__ and key not in self.__references__:
                raise TypeError("%s has no field %r" % (type(self).__name__, key))
            values[key] = value

        self._parent = None
        self.token = token
        self.attributes = {}

        for ref in self.__references__:
            setattr(self, ref, values.get(ref))

        for field in fields:
            if field.repeated:
                value = list(values.get(field.name) or ())
            else:
                value = values.get(field.name)
                if value is None and not field.optional:
                    raise TypeError("Field %s.%s is not optional."
                                    % (type(self).__name__, field.name))
            setattr(self, field.internalname, value)

        if attributes:
            for key, vals in attributes.items():
                self.attributes[key] = list(vals)

        children = list(self.enumerate_children())
        self._checkDetached(children)
        for child in children:
            child.link(self)

    @property
    def parent(self):
        return self._parent

    def fields(self):
        """Return a tuple of (name, value) pairs for every slot."""
        return tuple((field.name, getattr(self, field.internalname))
                     for field in self.__allfields__)

    def children(self):
        return tuple(value for _, value in self.fields())

    def __repr__(self):
        return "%s(%s)" % (type(self).__name__,
                           ", ".join(repr(value) for value in self.children()))

    # Linking

    def link(self, parent):
        """Set the parent back-reference and notify the observers.

        Slot bookkeeping is done by insert_children / insert_siblings, which
        call this for every node they insert.

        Raises:
            StructuralError: If the node already has a parent.
        """
        if self._parent is not None:
            raise StructuralError("%s is already attached to %s"
                                  % (type(self).__name__, type(self._parent).__name__))
        self._parent = parent
        notifyObservers(LINK, parent, self)
        return self

    def unlink(self):
        """Detach the node from its parent, leaving a free subtree."""
        parent = self._parent
        if parent is None:
            return self

        field, index = parent._locate(self)
        if field is not None:
            if field.repeated:
                del getattr(parent, field.internalname)[index]
            else:
                setattr(parent, field.internalname, None)

        self._detach()
        return self

    def _detach(self):
        parent = self._parent
        notifyObservers(UNLINK, parent, self)
        self._parent = None

    def _locate(self, child):
        for field in self.__allfields__:
            value = getattr(self, field.internalname)
            if field.repeated:
                for index, elem in enumerate(value):
                    if elem is child:
                        return field, index
            elif value is child:
                return field, None
        return None, None

    def _checkDetached(self, nodes, allowed=()):
        seen = set()
        for node in nodes:
            if id(node) in seen:
                raise StructuralError("%s inserted twice" % type(node).__name__)
            seen.add(id(node))
            if node._parent is not None and not any(node is a for a in allowed):
                raise StructuralError("%s is already attached to %s"
                                      % (type(node).__name__, type(node._parent).__name__))

    def _clearScalar(self, field):
        current = getattr(self, field.internalname)
        setattr(self, field.internalname, None)
        if isinstance(current, ASTNode) and current._parent is self:
            current._detach()

    # Structural mutation

    def insert_children(self, name, where, *elems):
        """Insert values into the slot ``name``.

        For sequence slots, BEFORE prepends, AFTER appends, and INPLACE
        unlinks the previous content and replaces it. Scalar slots take
        exactly one value; an occupied scalar slot can only be overwritten
        INPLACE, which unlinks the previous child.

        Returns:
            self

        Raises:
            StructuralError: For an unknown slot, several values in a scalar
                slot, or an occupied scalar slot without INPLACE.
        """
        where = Where(where)
        field = self.__fieldmap__.get(name)
        if field is None:
            raise StructuralError("invalid child %s of %s" % (name, type(self).__name__))

        nodes = [elem for elem in elems if isinstance(elem, ASTNode)]
        current = getattr(self, field.internalname)

        if field.repeated:
            previous = current if where is Where.INPLACE else ()
            self._checkDetached(nodes, previous)

            if where is Where.BEFORE:
                current[0:0] = elems
            elif where is Where.AFTER:
                current.extend(elems)
            else:
                for old in list(current):
                    if isinstance(old, ASTNode) and old._parent is self:
                        old._detach()
                current[:] = elems
        else:
            if len(elems) != 1:
                raise StructuralError("cannot insert multiple %s children" % name)
            if current is not None and where is not Where.INPLACE:
                raise StructuralError("child %s of %s already populated"
                                      % (name, type(self).__name__))
            self._checkDetached(nodes, (current,) if current is not None else ())

            self._clearScalar(field)
            setattr(self, field.internalname, elems[0])

        for node in nodes:
            node.link(self)
        return self

    def prepend_children(self, name, *elems):
        return self.insert_children(name, Where.BEFORE, *elems)

    def append_children(self, name, *elems):
        return self.insert_children(name, Where.AFTER, *elems)

    def replace_children(self, name, *elems):
        return self.insert_children(name, Where.INPLACE, *elems)

    def insert_siblings(self, where, *elems):
        """Insert nodes next to this one in its parent's slot.

        INPLACE removes this node first, so ``insert_siblings(INPLACE)`` with
        no nodes deletes it. A node held in a scalar slot can only be
        replaced by a single node or removed. Does nothing when the node has
        no parent.

        Returns:
            self
        """
        where = Where(where)
        parent = self._parent
        if parent is None:
            return self

        field, index = parent._locate(self)
        if field is None:
            raise StructuralError("%s is not held by its parent %s"
                                  % (type(self).__name__, type(parent).__name__))

        nodes = [elem for elem in elems if isinstance(elem, ASTNode)]
        self._checkDetached(nodes)

        if field.repeated:
            siblings = getattr(parent, field.internalname)
            if where is Where.BEFORE:
                siblings[index:index] = elems
            elif where is Where.AFTER:
                siblings[index + 1:index + 1] = elems
            else:
                del siblings[index]
                self._detach()
                siblings[index:index] = elems
        else:
            if where is not Where.INPLACE:
                raise StructuralError("cannot insert siblings of scalar child %s" % field.name)
            if len(elems) > 1:
                raise StructuralError("cannot insert multiple %s children" % field.name)
            setattr(parent, field.internalname, elems[0] if elems else None)
            self._detach()

        for node in nodes:
            node.link(parent)
        return self

    def insert_before(self, *elems):
        return self.insert_siblings(Where.BEFORE, *elems)

    def insert_after(self, *elems):
        return self.insert_siblings(Where.AFTER, *elems)

    def replace_with(self, *elems):
        return self.insert_siblings(Where.INPLACE, *elems)

    def remove(self):
        return self.insert_siblings(Where.INPLACE)

    def _siblings(self):
        parent = self._parent
        if parent is None:
            return None, None
        field, index = parent._locate(self)
        if field is None or not field.repeated:
            return None, None
        return getattr(parent, field.internalname), index

    @property
    def next_sibling(self):
        siblings, index = self._siblings()
        if siblings is None or index + 1 >= len(siblings):
            return None
        return siblings[index + 1]

    @property
    def previous_sibling(self):
        siblings, index = self._siblings()
        if siblings is None or index == 0:
            return None
        return siblings[index - 1]

    # Traversal

    def enumerate(self):
        """Yield this node and every node below it, in pre-order."""
        yield self
        for field in self.__allfields__:
            value = getattr(self, field.internalname)
            if field.repeated:
                for child in list(value):
                    if isinstance(child, ASTNode):
                        yield from child.enumerate()
            elif isinstance(value, ASTNode):
                yield from value.enumerate()

    __iter__ = enumerate

    def enumerate_children(self):
        for field in self.__allfields__:
            value = getattr(self, field.internalname)
            if field.repeated:
                for child in list(value):
                    if isinstance(child, ASTNode):
                        yield child
            elif isinstance(value, ASTNode):
                yield value

    def enumerate_ancestors(self):
        node = self
        while node is not None:
            yield node
            node = node._parent

    def root(self):
        node = self
        while node._parent is not None:
            node = node._parent
        return node

    # Copying

    def copy(self):
        """Return a detached deep copy.

        Child nodes and attribute arguments are copied; the references named
        in ``__references__`` are shared with the original.
        """
        values = {}
        for field in self.__allfields__:
            value = getattr(self, field.internalname)
            if field.repeated:
                values[field.name] = [copyValue(elem) for elem in value]
            else:
                values[field.name] = copyValue(value)

        for ref in self.__references__:
            values[ref] = getattr(self, ref)

        attributes = {key: [copyValue(v) for v in vals]
                      for key, vals in self.attributes.items()}

        return type(self)(attributes=attributes, token=self.token, **values)

    # Attributes

    def has_attribute(self, name):
        return name in self.attributes

    def get_attribute(self, name):
        """Return the argument list of annotation ``name``, or None if absent."""
        values = self.attributes.get(name)
        return None if values is None else list(values)

    def add_attribute(self, name, *values):
        self.attributes.setdefault(name, []).extend(values)
        return self

    def remove_attribute(self, name):
        self.attributes.pop(name, None)
        return self


def copyValue(value):
    if isinstance(value, ASTNode):
        return value.copy()
    return value
