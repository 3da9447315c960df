"""
Pytest configuration and fixtures for solr-stream.

FakeSolr is an in-memory stand-in for a Solr collection set, served through
httpx.MockTransport. It understands the parts of the update and /stream
protocols the connector uses, keeps uncommitted writes invisible until a
commit (explicit or commitWithin), and counts open stream responses so tests
can check cursors get released.
"""

import asyncio
import copy
import json
import re
import sys
from urllib.parse import parse_qs

import httpx
import pytest

from solr_stream import AsyncSolrClient, SolrClient

# Set policy *before* pytest-asyncio creates any loops
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


BOOK_TITLES = [
    "Akka in Action",
    "Programming in Scala",
    "Learning Scala",
    "Scala for Spark in Production",
    "Scala Puzzlers",
    "Effective Akka",
    "Akka Concurrency",
]

SORTED_TITLES = sorted(BOOK_TITLES)


class _Obj(list):
    """JSON object kept as ordered (key, value) pairs so duplicate keys survive."""


def _plain(v):
    if isinstance(v, _Obj):
        return {k: _plain(x) for k, x in v}
    if isinstance(v, list):
        return [_plain(x) for x in v]
    return v


class _TrackedStream(httpx.SyncByteStream, httpx.AsyncByteStream):
    def __init__(self, chunks, solr):
        self._chunks = chunks
        self._solr = solr
        self._closed = False
        solr.open_streams += 1

    def __iter__(self):
        for c in self._chunks:
            yield c

    async def __aiter__(self):
        for c in self._chunks:
            await asyncio.sleep(0)
            yield c

    def close(self):
        if not self._closed:
            self._closed = True
            self._solr.open_streams -= 1

    async def aclose(self):
        self.close()


class FakeSolr:
    _SEARCH = re.compile(r'fl="(?P<fl>[^"]*)".*?sort="(?P<sort>\w+) (?P<dir>asc|desc)"')
    _QUERY = re.compile(r'^(?P<field>\w+):"?(?P<value>.*?)"?$')

    def __init__(self, unique_key="title", chunk_size=7):
        self.unique_key = unique_key
        self.chunk_size = chunk_size
        self.index = {}  # collection -> {uid: doc}, latest state
        self.visible = {}  # collection -> {uid: doc}, what readers see
        self.requests = []  # (collection, params, commands)
        self.fail_updates = None  # None | "connect" | HTTP status
        self.reject_ids = set()
        self.stream_exception = None
        self.open_streams = 0
        self.streams_opened = 0

    # ---------- helpers

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def seed(self, collection, docs):
        self.index.setdefault(collection, {})
        for d in docs:
            self.index[collection][d[self.unique_key]] = dict(d)
        self.commit(collection)

    def commit(self, collection):
        self.visible[collection] = copy.deepcopy(self.index.get(collection, {}))

    def docs(self, collection):
        return sorted(self.visible.get(collection, {}).values(), key=lambda d: d[self.unique_key])

    # ---------- HTTP

    def handle(self, request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip("/").split("/")
        collection, action = parts[-2], parts[-1]
        if action == "update":
            return self._update(collection, request)
        if action == "stream":
            return self._stream(collection, request)
        if action == "ping":
            return httpx.Response(200, json={"status": "OK"})
        return httpx.Response(404, json={"error": {"code": 404, "msg": "not found"}})

    def _update(self, collection, request):
        if self.fail_updates == "connect":
            raise httpx.ConnectError("connection refused", request=request)
        if self.fail_updates is not None:
            code = self.fail_updates
            return httpx.Response(
                code,
                json={"responseHeader": {"status": code}, "error": {"code": code, "msg": "boom"}},
            )

        params = dict(request.url.params)
        top = json.loads(request.content, object_pairs_hook=_Obj)
        commands = [(k, _plain(v)) for k, v in top]
        self.requests.append((collection, params, commands))

        idx = self.index.setdefault(collection, {})
        self.visible.setdefault(collection, {})
        errors = []
        for cmd, body in commands:
            if cmd == "add":
                doc = body["doc"]
                uid = doc.get(self.unique_key)
                if uid in self.reject_ids:
                    errors.append({"type": "ADD", "id": uid, "message": "document rejected"})
                    continue
                if any(isinstance(v, dict) for v in doc.values()):
                    idx[uid] = self._atomic(idx.get(uid, {}), doc)
                else:
                    idx[uid] = dict(doc)
            elif cmd == "delete":
                if isinstance(body, list):
                    for uid in body:
                        idx.pop(uid, None)
                elif "query" in body:
                    for uid in [u for u, d in idx.items() if self._matches(d, body["query"])]:
                        del idx[uid]
                else:
                    idx.pop(body["id"], None)
            elif cmd == "commit":
                self.commit(collection)

        if "commitWithin" in params and int(params["commitWithin"]) >= 0:
            self.commit(collection)

        out = {"responseHeader": {"status": 0, "QTime": 1}}
        if errors:
            out["errors"] = errors
        return httpx.Response(200, json=out)

    @staticmethod
    def _atomic(existing, doc):
        new = dict(existing)
        for field, value in doc.items():
            if not isinstance(value, dict):
                new[field] = value
                continue
            for op, arg in value.items():
                if op == "set":
                    new[field] = arg
                elif op == "inc":
                    new[field] = new.get(field, 0) + arg
                elif op == "add":
                    cur = new.get(field, [])
                    cur = cur if isinstance(cur, list) else [cur]
                    new[field] = cur + (arg if isinstance(arg, list) else [arg])
                elif op == "remove":
                    new.pop(field, None)
        return new

    def _matches(self, doc, query):
        if query == "*:*":
            return True
        m = self._QUERY.match(query)
        return m is not None and str(doc.get(m.group("field"))) == m.group("value")

    def _stream(self, collection, request):
        if collection not in self.visible:
            return httpx.Response(
                404, json={"error": {"code": 404, "msg": f"Collection not found: {collection}"}}
            )
        self.streams_opened += 1
        form = parse_qs(request.content.decode())
        expr = form["expr"][0]
        m = self._SEARCH.search(expr)
        fields = [f.strip() for f in m.group("fl").split(",")]
        key = m.group("sort")
        docs = sorted(
            self.visible.get(collection, {}).values(),
            key=lambda d: d.get(key, ""),
            reverse=m.group("dir") == "desc",
        )
        tuples = [{f: d[f] for f in fields if f in d} for d in docs]
        if self.stream_exception is not None:
            tuples = tuples[:1] + [{"EXCEPTION": self.stream_exception, "EOF": True}]
        else:
            tuples.append({"EOF": True, "RESPONSE_TIME": 1})

        body = '{"result-set":{"docs":[' + ",\n".join(json.dumps(t) for t in tuples) + "]}}"
        raw = body.encode()
        chunks = [raw[i : i + self.chunk_size] for i in range(0, len(raw), self.chunk_size)]
        return httpx.Response(200, stream=_TrackedStream(chunks, self))


def search_expr(collection, fl="title,comment", sort="title asc"):
    return f'search({collection}, q=*:*, fl="{fl}", sort="{sort}")'


@pytest.fixture
def fake_solr():
    solr = FakeSolr()
    solr.seed("collection1", [{"title": t} for t in BOOK_TITLES])
    return solr


@pytest.fixture
def solr(fake_solr):
    client = SolrClient("http://solr.test/solr", id_field="title", transport=fake_solr.transport())
    yield client
    client.close()


@pytest.fixture
def async_solr_factory(fake_solr):
    """AsyncSolrClient bound to fake_solr; create inside the test's event loop."""

    def _make(**kwargs):
        return AsyncSolrClient(
            "http://solr.test/solr", id_field="title", transport=fake_solr.transport(), **kwargs
        )

    return _make
