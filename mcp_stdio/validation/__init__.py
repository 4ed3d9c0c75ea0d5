"""Declarative input-shape validation."""

from .shape import InputShape, Param, ShapeValidator, compile_shape

__all__ = ["InputShape", "Param", "ShapeValidator", "compile_shape"]
