# -*- mode: python; coding: utf-8 -*-
# Copyright 2026 the levfit developers and collaborators.
# Licensed under the MIT License.

"""The :mod:`levfit.simpleenum` module contains a single decorator function
for freezing a table of named constants, such as the solver status codes::

  from levfit.simpleenum import enumeration

  @enumeration
  class Status(object):
      ERROR = -1
      LAPACK_ERROR = -2

  if code == Status.ERROR:
      ...

Unlike :class:`enum.Enum`, the values stay plain integers (or whatever they
were declared as), so they compare directly against the raw numbers a solver
returns. The resulting object cannot be modified, and :meth:`items` lists the
declared names and values in a stable order.

"""

__all__ = "enumeration".split()


def enumeration(cls):
    """Freeze the public attributes of the class *cls* into an immutable holder
    object and return that object.

    Attributes whose names start with an underscore are dropped.

    """
    name = cls.__name__
    members = dict((k, getattr(cls, k)) for k in dir(cls) if not k.startswith("_"))
    ordered = tuple(sorted(members.items(), key=lambda kv: kv[0]))

    def __repr__(self):
        return "<enumeration %s>" % name

    def getattr_error(self, attr):
        raise AttributeError(
            "enumeration %s does not contain attribute %s" % (name, attr)
        )

    def modattr_error(self, *args, **kwargs):
        raise AttributeError("modification of %s enumeration not allowed" % name)

    def items(self):
        return ordered

    def name_of(self, value):
        for k, v in ordered:
            if v == value:
                return k
        raise KeyError(value)

    clsdict = {
        "__doc__": cls.__doc__,
        "__slots__": (),
        "__repr__": __repr__,
        "__str__": __repr__,
        "__getattr__": getattr_error,
        "__setattr__": modattr_error,
        "__delattr__": modattr_error,
        "items": items,
        "name_of": name_of,
    }
    clsdict.update(members)

    enumcls = type(name, (object,), clsdict)
    return enumcls()
