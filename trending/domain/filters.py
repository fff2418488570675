"""Composable repository filters used by the ranking query.

Each predicate can be evaluated in memory with ``matches`` and is compiled
to SQL by the storage adapter. Predicates held by a ``RepositoryFilter`` are
combined conjunctively; ``TextSearch`` is itself a disjunction over several
fields.
"""
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from trending.domain.models import Repository


@dataclass(frozen=True)
class LanguageEquals:
    """Exact match on the repository's primary language."""
    language: str

    def matches(self, repository: Repository) -> bool:
        return repository.language == self.language


@dataclass(frozen=True)
class TextSearch:
    """Case-insensitive substring match on name, full name, description or
    owner, or an exact match of the lower-cased text against a topic."""
    text: str

    def matches(self, repository: Repository) -> bool:
        needle = self.text.lower()
        fields = (
            repository.name,
            repository.full_name,
            repository.description,
            repository.owner,
        )
        if any(value and needle in value.lower() for value in fields):
            return True
        return needle in repository.topics


Predicate = Union[LanguageEquals, TextSearch]


@dataclass(frozen=True)
class RepositoryFilter:
    """Conjunction of predicates; an empty filter matches everything."""
    predicates: Tuple[Predicate, ...] = ()

    @classmethod
    def build(cls, language: Optional[str] = None, search: Optional[str] = None) -> 'RepositoryFilter':
        """Builds a filter from optional query parameters.

        Empty strings are treated as absent.
        """
        predicates = []
        if language:
            predicates.append(LanguageEquals(language))
        if search:
            predicates.append(TextSearch(search))
        return cls(tuple(predicates))

    @property
    def is_empty(self) -> bool:
        return not self.predicates

    def matches(self, repository: Repository) -> bool:
        return all(predicate.matches(repository) for predicate in self.predicates)
