import asyncio

import httpx
import pytest

from ops_payloads import biblio_payload, exchange_document
from patent_scout.core.models import DocumentId, EnrichmentStatus, PatentDocument
from patent_scout.tools.biblio import (
    BibliographicEnricher,
    extract_abstract,
    extract_applicants,
    extract_biblio_fields,
    extract_publication_date,
    extract_title,
)
from patent_scout.tools.errors import EnrichmentError


# --- extraction -------------------------------------------------------------


def test_title_prefers_english():
    biblio = {
        "invention-title": [
            {"@lang": "fr", "$": "Bidule"},
            {"@lang": "en", "$": "Widget"},
        ]
    }
    assert extract_title(biblio) == "Widget"


def test_title_falls_back_to_first_and_accepts_scalar():
    assert extract_title({"invention-title": [{"@lang": "de", "$": "Ding"}, {"@lang": "fr", "$": "Bidule"}]}) == "Ding"
    assert extract_title({"invention-title": {"@lang": "de", "$": "Ding"}}) == "Ding"
    assert extract_title({"invention-title": "Plain title"}) == "Plain title"
    assert extract_title({}) is None
    assert extract_title(None) is None


def test_title_accepts_language_attribute_spelling():
    biblio = {"invention-title": [{"@language": "fr", "$": "Bidule"}, {"@language": "en", "$": "Widget"}]}
    assert extract_title(biblio) == "Widget"


def test_title_falls_back_when_english_entry_is_blank():
    biblio = {"invention-title": [{"@lang": "de", "$": "Ding"}, {"@lang": "en"}]}
    assert extract_title(biblio) == "Ding"


def test_abstract_nested_under_paragraph():
    biblio = {
        "abstract": [
            {"@lang": "de", "p": {"$": "Eine Vorrichtung."}},
            {"@lang": "en", "p": {"$": "A device."}},
        ]
    }
    assert extract_abstract(biblio) == "A device."


def test_abstract_falls_back_when_english_entry_is_blank():
    biblio = {"abstract": [{"@lang": "de", "p": {"$": "Etwas."}}, {"@lang": "en"}]}
    assert extract_abstract(biblio) == "Etwas."


def test_abstract_paragraph_shapes():
    assert extract_abstract({"abstract": {"@lang": "en", "p": "Bare paragraph."}}) == "Bare paragraph."
    assert extract_abstract({"abstract": {"@lang": "en", "p": [{"$": "One."}, {"$": "Two."}]}}) == "One. Two."
    assert extract_abstract({"abstract": {"@lang": "en", "$": "No paragraph wrapper."}}) == "No paragraph wrapper."
    assert extract_abstract({"abstract": {"@lang": "en"}}) is None
    assert extract_abstract({}) is None


def test_abstract_is_kept_in_full():
    long_text = "x" * 1500
    assert extract_abstract({"abstract": {"p": {"$": long_text}}}) == long_text


def test_applicant_bare_object_equals_array_of_one():
    applicant = {"applicant-name": {"name": {"$": "ACME CORP"}}}
    scalar = {"parties": {"applicants": {"applicant": applicant}}}
    array = {"parties": {"applicants": {"applicant": [applicant]}}}

    assert extract_applicants(scalar) == ["ACME CORP"]
    assert extract_applicants(scalar) == extract_applicants(array)


def test_applicants_filter_unresolved_and_keep_order():
    biblio = {
        "parties": {
            "applicants": {
                "applicant": [
                    {"applicant-name": [{"name": {"$": "FIRST AG"}}, {"name": {"$": "First AG"}}]},
                    {"@sequence": "2"},
                    {"applicant-name": {"name": {}}},
                    {"applicant-name": {"$": "THIRD LTD"}},
                    {"applicant-name": {"name": "FOURTH INC"}},
                ]
            }
        }
    }
    assert extract_applicants(biblio) == ["FIRST AG", "THIRD LTD", "FOURTH INC"]


def test_publication_date_from_reference():
    biblio = {
        "publication-reference": {
            "document-id": [
                {"@document-id-type": "docdb", "date": {"$": "20200102"}},
                {"@document-id-type": "epodoc", "date": {"$": "20200103"}},
            ]
        }
    }
    assert extract_publication_date(biblio) == "2020-01-02"


def test_abstract_as_sibling_of_bibliographic_data():
    document = {
        "bibliographic-data": {"invention-title": {"@lang": "en", "$": "Widget"}},
        "abstract": {"@lang": "en", "p": {"$": "A widget."}},
    }
    fields = extract_biblio_fields(document)
    assert fields.title == "Widget"
    assert fields.abstract == "A widget."
    assert fields.applicants == []


# --- enrichment -------------------------------------------------------------


def make_docs(*ids):
    return [PatentDocument(doc_id=doc_id) for doc_id in ids]


EP1 = DocumentId("EP", "1000001", "A1")
EP2 = DocumentId("EP", "1000002", "A1")
EP3 = DocumentId("EP", "1000003", "B1")


def serve_biblio(fake_ops, doc_id, title, applicants=("ACME",)):
    key = f"{doc_id.country}.{doc_id.number}.{doc_id.kind}"
    fake_ops.biblio[key] = httpx.Response(
        200,
        json=biblio_payload(exchange_document(title=title, abstract=f"{title} abstract", applicants=list(applicants))),
    )


@pytest.mark.asyncio
async def test_enrich_fills_fields_sequentially_with_fixed_gap(config, fake_ops, http_client, sleep_recorder):
    for index, doc_id in enumerate((EP1, EP2, EP3), start=1):
        serve_biblio(fake_ops, doc_id, f"Title {index}")
    enricher = BibliographicEnricher(config, http_client=http_client, sleep=sleep_recorder)

    docs = await enricher.enrich(make_docs(EP1, EP2, EP3), "tok")

    assert [doc.title for doc in docs] == ["Title 1", "Title 2", "Title 3"]
    assert all(doc.enrichment_status is EnrichmentStatus.ENRICHED for doc in docs)
    assert docs[0].abstract == "Title 1 abstract"
    assert docs[0].applicants == ["ACME"]
    assert sleep_recorder.delays == [0.4, 0.4]

    biblio_calls = fake_ops.calls_to("biblio")
    assert [call.url.path.rsplit("/", 2)[1] for call in biblio_calls] == [
        "EP.1000001.A1",
        "EP.1000002.A1",
        "EP.1000003.B1",
    ]
    assert all(call.headers["Authorization"] == "Bearer tok" for call in biblio_calls)


@pytest.mark.asyncio
async def test_single_failure_does_not_abort_batch(config, fake_ops, http_client, sleep_recorder):
    serve_biblio(fake_ops, EP1, "Title 1")
    fake_ops.biblio["EP.1000002.A1"] = httpx.Response(500, text="boom")
    serve_biblio(fake_ops, EP3, "Title 3")
    enricher = BibliographicEnricher(config, http_client=http_client, sleep=sleep_recorder)

    docs = await enricher.enrich(make_docs(EP1, EP2, EP3), "tok")

    assert len(docs) == 3
    assert [str(doc.doc_id) for doc in docs] == ["EP1000001.A1", "EP1000002.A1", "EP1000003.B1"]
    assert docs[1].title is None
    assert docs[1].abstract is None
    assert docs[1].applicants == []
    assert docs[1].enrichment_status is EnrichmentStatus.FAILED
    assert docs[0].title == "Title 1"
    assert docs[2].title == "Title 3"
    assert sleep_recorder.delays == [0.4, 0.4]


@pytest.mark.asyncio
async def test_transport_error_and_bad_payload_degrade_gracefully(config, sleep_recorder):
    def handler(request):
        if "EP.1000001.A1" in request.url.path:
            raise httpx.ConnectError("connection refused", request=request)
        if "EP.1000002.A1" in request.url.path:
            return httpx.Response(200, text="<not json>")
        return httpx.Response(200, json={"ops:world-patent-data": {}})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        enricher = BibliographicEnricher(config, http_client=client, sleep=sleep_recorder)
        docs = await enricher.enrich(make_docs(EP1, EP2, EP3), "tok")

    assert [doc.enrichment_status for doc in docs] == [EnrichmentStatus.FAILED] * 3


@pytest.mark.asyncio
async def test_empty_identifier_is_skipped_without_request(config, fake_ops, http_client, sleep_recorder):
    serve_biblio(fake_ops, EP1, "Title 1")
    enricher = BibliographicEnricher(config, http_client=http_client, sleep=sleep_recorder)

    docs = await enricher.enrich(make_docs(DocumentId.empty(), EP1), "tok")

    assert docs[0].enrichment_status is EnrichmentStatus.SKIPPED
    assert docs[1].title == "Title 1"
    assert len(fake_ops.calls_to("biblio")) == 1


@pytest.mark.asyncio
async def test_existing_publication_date_is_preserved(config, fake_ops, http_client, sleep_recorder):
    serve_biblio(fake_ops, EP1, "Title 1")
    enricher = BibliographicEnricher(config, http_client=http_client, sleep=sleep_recorder)

    docs = await enricher.enrich([PatentDocument(doc_id=EP1, publication_date="2019-05-01")], "tok")

    assert docs[0].publication_date == "2019-05-01"
    assert sleep_recorder.delays == []


@pytest.mark.asyncio
async def test_cancellation_returns_partial_results(config, fake_ops, http_client):
    for index, doc_id in enumerate((EP1, EP2, EP3), start=1):
        serve_biblio(fake_ops, doc_id, f"Title {index}")
    cancel_event = asyncio.Event()

    enricher = BibliographicEnricher(config, http_client=http_client, delay_seconds=5.0)

    async def cancel_soon():
        while not fake_ops.calls_to("biblio"):
            await asyncio.sleep(0)
        cancel_event.set()

    canceller = asyncio.create_task(cancel_soon())
    docs = await asyncio.wait_for(
        enricher.enrich(make_docs(EP1, EP2, EP3), "tok", cancel_event=cancel_event),
        timeout=2.0,
    )
    await canceller

    assert len(docs) == 3
    assert docs[0].enrichment_status is EnrichmentStatus.ENRICHED
    assert [doc.enrichment_status for doc in docs[1:]] == [EnrichmentStatus.SKIPPED] * 2
    assert len(fake_ops.calls_to("biblio")) == 1


@pytest.mark.asyncio
async def test_lookup_raises_on_failure(config, fake_ops, http_client):
    enricher = BibliographicEnricher(config, http_client=http_client)

    with pytest.raises(EnrichmentError):
        await enricher.lookup(EP1, "tok")

    serve_biblio(fake_ops, EP1, "Title 1")
    doc = await enricher.lookup(EP1, "tok")
    assert doc.title == "Title 1"
    assert doc.enrichment_status is EnrichmentStatus.ENRICHED


@pytest.mark.asyncio
async def test_no_pause_after_last_real_lookup(config, fake_ops, http_client, sleep_recorder):
    serve_biblio(fake_ops, EP1, "Title 1")
    enricher = BibliographicEnricher(config, http_client=http_client, sleep=sleep_recorder)

    docs = await enricher.enrich(make_docs(EP1, DocumentId.empty()), "tok")

    assert docs[0].title == "Title 1"
    assert docs[1].enrichment_status is EnrichmentStatus.SKIPPED
    assert len(fake_ops.calls_to("biblio")) == 1
    assert sleep_recorder.delays == []


@pytest.mark.asyncio
async def test_pauses_only_between_real_lookups(config, fake_ops, http_client, sleep_recorder):
    serve_biblio(fake_ops, EP1, "Title 1")
    serve_biblio(fake_ops, EP2, "Title 2")
    enricher = BibliographicEnricher(config, http_client=http_client, sleep=sleep_recorder)

    docs = await enricher.enrich(
        make_docs(DocumentId.empty(), EP1, DocumentId.empty(), EP2, DocumentId.empty()), "tok"
    )

    assert [doc.title for doc in docs] == [None, "Title 1", None, "Title 2", None]
    assert len(fake_ops.calls_to("biblio")) == 2
    assert sleep_recorder.delays == [0.4]
