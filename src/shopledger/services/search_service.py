from __future__ import annotations

from dataclasses import dataclass

from shopledger.domain.models import Article, Customer


@dataclass(frozen=True)
class SearchResults:
    customers: list[Customer]
    articles: list[Article]


class SearchService:
    def __init__(self, repo):
        self.repo = repo

    def global_search(self, term: str, limit: int = 5) -> SearchResults:
        term = (term or "").strip()
        if len(term) < 2:
            return SearchResults(customers=[], articles=[])
        return SearchResults(
            customers=self.repo.search_customers(term, limit),
            articles=self.repo.search_articles(term, limit),
        )
