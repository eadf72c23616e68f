from datetime import date, datetime, timedelta

import pytest
from pydantic import ValidationError

from ged.enums import Role, Category, Confidentiality
from ged.filters import filter_documents, count_documents, start_of_day, next_day_start
from ged.schemas import FilterCriteria


@pytest.fixture
def corpus(make_doc):
    return [
        make_doc(
            title="Délibération n°12 - Extension Zone Industrielle",
            description="Vote pour l extension de la zone franche de Sandiara.",
            category=Category.DELIBERATION,
            service="Conseil Municipal",
            sender="Secrétariat Général",
            confidentiality=Confidentiality.PUBLIC,
            received_at=datetime(2024, 1, 3, 9, 0),
        ),
        make_doc(
            title="Titre foncier lot 45",
            description="Demande d'immatriculation",
            category=Category.DOSSIER_FONCIER,
            service="Domaines et Foncier",
            sender="Cabinet Ndiaye",
            confidentiality=Confidentiality.CONFIDENTIEL,
            received_at=datetime(2024, 1, 6, 15, 30),
        ),
        make_doc(
            title="Note du Maire",
            description="Arbitrage budgétaire",
            category=Category.NOTE_INTERNE,
            service="Cabinet du Maire",
            sender="M. le Maire",
            confidentiality=Confidentiality.STRICTEMENT_PRIVE,
            received_at=datetime(2024, 1, 9, 18, 0),
        ),
    ]


def _ids(docs):
    return [d.id for d in docs]


def test_no_criteria_returns_visible_documents_in_input_order(corpus):
    assert _ids(filter_documents(corpus, Role.MAIRE, FilterCriteria())) == _ids(corpus)
    assert _ids(filter_documents(corpus, Role.ADMINISTRATEUR)) == _ids(corpus[:2])
    assert _ids(filter_documents(corpus, Role.SECRETAIRE)) == _ids(corpus[:1])


def test_order_is_kept_not_resorted(corpus):
    reversed_docs = list(reversed(corpus))
    assert _ids(filter_documents(reversed_docs, Role.MAIRE)) == _ids(reversed_docs)


def test_text_query_is_case_insensitive_on_title(corpus):
    # Scénario D
    result = filter_documents(corpus, Role.SECRETAIRE, FilterCriteria(text_query="zONE inDUSTRIELLE"))
    assert _ids(result) == [corpus[0].id]


def test_text_query_matches_description(corpus):
    result = filter_documents(corpus, Role.MAIRE, FilterCriteria(text_query="immatriculation"))
    assert _ids(result) == [corpus[1].id]


def test_category_filter_exact_match(make_doc):
    # Scénario B
    docs = [
        make_doc(category=Category.ARRETE_MUNICIPAL),
        make_doc(category=Category.DOSSIER_FONCIER),
        make_doc(category=Category.AUTRE),
    ]
    for role in Role:
        result = filter_documents(docs, role, FilterCriteria(category="Dossier Foncier"))
        assert _ids(result) == [docs[1].id]


def test_confidentiality_filter(corpus):
    result = filter_documents(corpus, Role.MAIRE, FilterCriteria(confidentiality=Confidentiality.CONFIDENTIEL))
    assert _ids(result) == [corpus[1].id]


def test_confidentiality_not_selectable_fails_closed(corpus):
    for level in (Confidentiality.CONFIDENTIEL, Confidentiality.STRICTEMENT_PRIVE):
        assert filter_documents(corpus, Role.SECRETAIRE, FilterCriteria(confidentiality=level)) == []
    assert filter_documents(
        corpus, Role.ADMINISTRATEUR, FilterCriteria(confidentiality=Confidentiality.STRICTEMENT_PRIVE)
    ) == []


def test_role_visibility_cannot_be_bypassed_by_filters(corpus):
    criteria = FilterCriteria(text_query="Maire")
    assert filter_documents(corpus, Role.ADMINISTRATEUR, criteria) == []
    assert _ids(filter_documents(corpus, Role.MAIRE, criteria)) == [corpus[2].id]


def test_sender_or_service_substring(corpus):
    by_sender = filter_documents(corpus, Role.MAIRE, FilterCriteria(sender_or_service="ndiaye"))
    by_service = filter_documents(corpus, Role.MAIRE, FilterCriteria(sender_or_service="CONSEIL"))
    assert _ids(by_sender) == [corpus[1].id]
    assert _ids(by_service) == [corpus[0].id]


def test_date_range_between(corpus):
    criteria = FilterCriteria(date_start=date(2024, 1, 4), date_end=date(2024, 1, 8))
    assert _ids(filter_documents(corpus, Role.MAIRE, criteria)) == [corpus[1].id]


def test_open_ended_date_bounds(corpus):
    after = filter_documents(corpus, Role.MAIRE, FilterCriteria(date_start=date(2024, 1, 6)))
    before = filter_documents(corpus, Role.MAIRE, FilterCriteria(date_end=date(2024, 1, 6)))
    assert _ids(after) == _ids(corpus[1:])
    assert _ids(before) == _ids(corpus[:2])


def test_date_range_inclusive_bounds(make_doc):
    start, end = date(2024, 1, 5), date(2024, 1, 10)
    at_start = make_doc(received_at=datetime(2024, 1, 5, 0, 0, 0))
    at_end = make_doc(received_at=datetime(2024, 1, 10, 23, 59, 59, 999000))
    last_instant = make_doc(received_at=datetime(2024, 1, 10, 23, 59, 59, 999500))
    just_after = make_doc(received_at=next_day_start(end))
    just_before = make_doc(received_at=start_of_day(start) - timedelta(milliseconds=1))

    result = filter_documents(
        [at_start, at_end, last_instant, just_after, just_before],
        Role.MAIRE,
        FilterCriteria(date_start=start, date_end=end),
    )
    assert _ids(result) == [at_start.id, at_end.id, last_instant.id]


def test_inverted_date_range_is_empty(corpus):
    # Scénario E
    criteria = FilterCriteria(date_start=date(2024, 1, 10), date_end=date(2024, 1, 5))
    assert filter_documents(corpus, Role.MAIRE, criteria) == []
    assert filter_documents(corpus, Role.MAIRE, criteria.model_copy(update={"text_query": "zone"})) == []


def test_combined_criteria(corpus):
    criteria = FilterCriteria(
        text_query="lot",
        category=Category.DOSSIER_FONCIER,
        confidentiality=Confidentiality.CONFIDENTIEL,
        sender_or_service="foncier",
        date_start=date(2024, 1, 6),
        date_end=date(2024, 1, 6),
    )
    assert _ids(filter_documents(corpus, Role.ADMINISTRATEUR, criteria)) == [corpus[1].id]
    assert filter_documents(corpus, Role.SECRETAIRE, criteria) == []


def test_filtering_is_idempotent_and_does_not_mutate(corpus):
    criteria = FilterCriteria(text_query="e", sender_or_service="a")
    snapshot = [(d.id, d.view_count, d.title) for d in corpus]

    first = filter_documents(corpus, Role.MAIRE, criteria)
    second = filter_documents(corpus, Role.MAIRE, criteria)

    assert _ids(first) == _ids(second)
    assert [(d.id, d.view_count, d.title) for d in corpus] == snapshot


def test_count_documents(corpus):
    assert count_documents(corpus, Role.ADMINISTRATEUR) == 2
    assert count_documents(corpus, Role.MAIRE, FilterCriteria(category=Category.AUTRE)) == 0


def test_criteria_reset_and_activity():
    assert not FilterCriteria().is_active()
    assert not FilterCriteria(text_query="budget").is_active()
    assert FilterCriteria(category=Category.AUTRE).is_active()
    assert FilterCriteria(sender_or_service="Urbanisme").is_active()
    assert FilterCriteria(date_end=date(2024, 1, 1)).is_active()


def test_unknown_category_is_rejected():
    with pytest.raises(ValidationError):
        FilterCriteria(category="Facture")
