import json

import httpx
import pytest

from doc_committer.commit import CommitDriver
from doc_committer.exceptions import CommitAborted, ImproperlyConfigured
from doc_committer.target import SolrTarget, get_target

URL = "http://solr:8983/solr/docs"


def make_target(responses: list, requests: list, **kwargs) -> SolrTarget:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        res = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(res, Exception):
            raise res
        return httpx.Response(res, json={"responseHeader": {"status": 0}})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    return SolrTarget(url=f"{URL}/", client=client, **kwargs)


def test_target_solr(tmp_queue):
    requests = []
    target = make_target([200], requests)
    assert target.name == "solr"
    assert target.url == URL

    tmp_queue.put_add(
        "doc1", "<p>Hello</p> world", {"title": "Hello", "tags": ["a", "b"]}
    )
    tmp_queue.put_add("doc2", "plain")
    tmp_queue.put_remove("doc0")
    job = CommitDriver(tmp_queue, target).commit()
    assert job.added == 2
    assert job.removed == 1
    assert tmp_queue.is_empty()

    assert len(requests) == 2
    req = requests[0]
    assert req.method == "POST"
    assert req.url.path == "/solr/docs/update"
    assert req.url.params["commit"] == "true"
    assert json.loads(req.content) == [
        {
            "id": "doc1",
            "title": "Hello",
            "tags": ["a", "b"],
            "content": " Hello  world",
        },
        {"id": "doc2", "content": "plain"},
    ]
    req = requests[1]
    assert req.url.path == "/solr/docs/update"
    assert json.loads(req.content) == {"delete": ["doc0"]}


def test_target_solr_fields(tmp_queue):
    requests = []
    target = make_target(
        [200],
        requests,
        id_source_field="url",
        content_target_field="text",
    )
    tmp_queue.put_add("doc1", "hello", {"url": "https://example.org/doc1"})
    CommitDriver(tmp_queue, target).commit()
    assert json.loads(requests[0].content) == [
        {
            "id": "https://example.org/doc1",
            "url": "https://example.org/doc1",
            "text": "hello",
        }
    ]

    # missing id field
    tmp_queue.put_add("doc2", "hello")
    with pytest.raises(CommitAborted) as e:
        CommitDriver(tmp_queue, target, max_retries=3).commit()
    assert e.value.result.status == "permanent"
    assert len(requests) == 1
    assert tmp_queue.count() == 1


def test_target_solr_errors(tmp_queue):
    tmp_queue.put_add("doc1", "hello")

    # server errors are retried
    requests = []
    target = make_target([503, 429, 200], requests)
    CommitDriver(tmp_queue, target, max_retries=2).commit()
    assert len(requests) == 3
    assert tmp_queue.is_empty()

    tmp_queue.put_add("doc1", "hello")
    requests = []
    target = make_target([500], requests)
    with pytest.raises(CommitAborted) as e:
        CommitDriver(tmp_queue, target, max_retries=1).commit()
    assert e.value.result.transient
    assert len(requests) == 2
    assert tmp_queue.count() == 1

    # client errors are not
    requests = []
    target = make_target([400], requests)
    with pytest.raises(CommitAborted) as e:
        CommitDriver(tmp_queue, target, max_retries=3).commit()
    assert e.value.result.status == "permanent"
    assert len(requests) == 1
    assert tmp_queue.count() == 1

    # connection problems are transient
    requests = []
    target = make_target([httpx.ConnectError("refused"), 200], requests)
    CommitDriver(tmp_queue, target, max_retries=1).commit()
    assert len(requests) == 2
    assert tmp_queue.is_empty()


def test_target_solr_config():
    with pytest.raises(ImproperlyConfigured):
        SolrTarget()
    with pytest.raises(ImproperlyConfigured):
        get_target("solr", name="index")
    target = get_target("solr", name="index", url=URL, timeout=5)
    assert isinstance(target, SolrTarget)
    assert target.name == "index"
    target.close()


def test_target_solr_reserved_fields(tmp_queue):
    requests = []
    target = make_target([200], requests)
    tmp_queue.put_add(
        "doc1",
        "<b>body</b>",
        {"id": "other", "content": "meta content", "lang": "en", "empty": None},
    )
    tmp_queue.put_remove("doc1")
    CommitDriver(tmp_queue, target).commit()
    # id and content can't be overwritten from metadata, empty keys are dropped
    assert json.loads(requests[0].content) == [
        {"id": "doc1", "lang": "en", "content": " body "}
    ]
    assert json.loads(requests[1].content) == {"delete": ["doc1"]}
