# -*- mode: python; coding: utf-8 -*-
# Copyright 2026 the levfit developers and collaborators.
# Licensed under the MIT License.

"""Levenberg-Marquardt curve fitting with a typed, checked front end.

The main entry points are :func:`levfit.levmar.levmar`, which fits a model
written as a function of a parameter vector, and
:func:`levfit.fitting.levmar`, which fits a model written as a function of a
fixed number of scalar parameters plus an independent variable.

"""

__all__ = "LFError".split()

__version__ = "0.1.0"  # also edit ../setup.py, ../docs/source/conf.py!


class LFError(Exception):
    """A generic base class for exceptions.

    All custom exceptions raised by :mod:`levfit` modules should be subclasses
    of this class.

    The constructor automatically applies old-fashioned ``printf``-like
    (``%``-based) string formatting if more than one argument is given::

      LFError('my format string says %r, %d', myobj, 12345)
      # has text content equal to:
      'my format string says %r, %d' % (myobj, 12345)

    If only a single argument is given, the exception text is its
    stringification without applying ``printf``-style formatting.

    """

    def __init__(self, fmt, *args):
        if not len(args):
            self.args = (str(fmt),)
        else:
            self.args = (str(fmt) % args,)

    def __str__(self):
        return self.args[0]

    def __repr__(self):
        return "%s(%r)" % (self.__class__.__name__, self.args[0])
