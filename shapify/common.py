"""
Common utility functions for shapify.
"""

# pylint: disable=line-too-long

import keyword
import os
import re

import jinja2


def pascal(string):
    """
    Convert a string to PascalCase from snake_case, kebab-case, camelCase, or PascalCase.
    Characters that cannot appear in an identifier act as word separators.
    Underscores at the beginning of the string are preserved in the output.

    Args:
        string (str): The string to convert.

    Returns:
        str: The string in PascalCase.
    """
    if not string:
        return string
    startswith_under = string[0] == '_'
    words = []
    for chunk in re.split(r'[^a-zA-Z0-9]+', string):
        if not chunk:
            continue
        words.extend(re.findall(r'[A-Z]+(?![a-z])|[A-Z][a-z0-9]*|[a-z0-9]+', chunk))
    result = ''.join(word.capitalize() for word in words)
    if startswith_under:
        result = '_' + result
    return result


def camel(string):
    """
    Convert a string to camelCase from snake_case, camelCase, or PascalCase.

    Args:
        string (str): The string to convert.

    Returns:
        str: The string in camelCase.
    """
    result = pascal(string)
    if not result:
        return result
    if result[0] == '_':
        return '_' + result[1:2].lower() + result[2:]
    return result[0].lower() + result[1:]


def is_python_identifier(name: str) -> bool:
    """Checks if a name can be used as a Python attribute name"""
    return name.isidentifier() and not keyword.iskeyword(name)


def safe_identifier(name: str) -> str:
    """Turns an arbitrary key into a valid Python identifier."""
    val = re.sub(r'[^a-zA-Z0-9_]', '_', name)
    if not val or re.match(r'^[0-9]', val):
        val = '_' + val
    if keyword.iskeyword(val) or val in ('self', 'cls'):
        val = val + '_'
    return val


def process_template(file_path: str, **kvargs) -> str:
    """
    Process a file as a Jinja2 template with the given object as input.

    Args:
        file_path (str): The path to the file, relative to the package directory.
        **kvargs: The variables to render the template with.

    Returns:
        str: The processed template as a string.
    """
    file_dir = os.path.dirname(__file__)
    template_loader = jinja2.FileSystemLoader(searchpath=file_dir)
    template_env = jinja2.Environment(loader=template_loader, keep_trailing_newline=False, trim_blocks=True, lstrip_blocks=True)
    template_env.filters['pascal'] = pascal
    template_env.filters['camel'] = camel

    template = template_env.get_template(file_path)
    return template.render(**kvargs)
