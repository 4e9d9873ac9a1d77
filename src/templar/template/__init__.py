"""Compiled programs and the render wrapper.

``compiled`` is imported first: the compiler depends on CompiledTemplate
while the Template wrapper depends (lazily) on the Environment.

"""

from templar.template.compiled import CompiledTemplate
from templar.template.core import Template
from templar.template.serialize import FileTemplateCache, dumps, loads

__all__ = [
    "CompiledTemplate",
    "FileTemplateCache",
    "Template",
    "dumps",
    "loads",
]
