"""Naming helpers for resource names."""
import re


def to_snake_case(name: str) -> str:
    """Convert PascalCase or camelCase to snake_case."""
    s1 = re.sub('(.)([A-Z][a-z]+)', r'\1_\2', name)
    s2 = re.sub('([a-z0-9])([A-Z])', r'\1_\2', s1)
    return s2.lower()


def to_studly_case(name: str) -> str:
    """Convert snake_case, kebab-case or camelCase to StudlyCase."""
    parts = re.split(r'[\s_\-.]+', name)
    return "".join(p[:1].upper() + p[1:] for p in parts if p)


def pluralize(word: str) -> str:
    """Simple English pluralization."""
    if word.endswith('s') or word.endswith('x') or word.endswith('z') or word.endswith('ch') or word.endswith('sh'):
        return word + 'es'
    elif word.endswith('y') and len(word) > 1 and word[-2] not in 'aeiou':
        return word[:-1] + 'ies'
    else:
        return word + 's'


def singularize(word: str) -> str:
    """Inverse of pluralize for the common cases."""
    if word.endswith('ies') and len(word) > 3:
        return word[:-3] + 'y'
    if word.endswith(('sses', 'shes', 'ches', 'xes', 'zes')):
        return word[:-2]
    if word.endswith('ss') or word.endswith('us') or word.endswith('is'):
        return word
    if word.endswith('s') and len(word) > 1:
        return word[:-1]
    return word


def slug_to_path(slug: str) -> str:
    """Nested module slugs use dots; URLs use slashes."""
    return slug.replace('.', '/')


def module_name_from_controller(class_name: str) -> str:
    """EventController -> events"""
    base = class_name.replace('Controller', '')
    return pluralize(base.lower())


def title_case(name: str) -> str:
    return " ".join(p.capitalize() for p in re.split(r'[\s_\-.]+', name) if p)
