"""Tests for the asyncio adapter."""

from __future__ import annotations

import asyncio
import os
import threading

import pytest

from objstore.infra.storage.aio import AsyncObjectStore
from objstore.infra.storage.client import NotFoundError, StoragePermissionError
from tests.infra.fake_s3 import client_error


class TestAsyncObjectStore:
    def test_round_trip(self, store, tmp_path):
        source = tmp_path / "in.txt"
        source.write_bytes(b"from disk")
        destination = tmp_path / "out.txt"

        async def scenario():
            async with AsyncObjectStore(store) as astore:
                assert await astore.upload_from_bytes("a.txt", b"hello") == (
                    "s3://test-bucket/a.txt"
                )
                await astore.upload_from_path("b.txt", str(source), "text/plain")
                keys = [info.key for info in await astore.list_objects()]
                body = await astore.download("a.txt")
                await astore.download_to_path("b.txt", str(destination))
                found = await astore.exists("a.txt")
                removed = await astore.delete("a.txt")
                gone = not await astore.exists("a.txt")
                return keys, body, found, removed, gone

        keys, body, found, removed, gone = asyncio.run(scenario())

        assert keys == ["a.txt", "b.txt"]
        assert body == b"hello"
        assert destination.read_bytes() == b"from disk"
        assert found and removed and gone
        assert store.closed

    def test_errors_propagate_unchanged(self, fake_s3, store):
        fake_s3.fail_with("head_object", client_error("AccessDenied", 403))
        astore = AsyncObjectStore(store)

        with pytest.raises(StoragePermissionError):
            asyncio.run(astore.exists("k"))
        with pytest.raises(NotFoundError):
            asyncio.run(astore.download("missing"))

    def test_aclose_is_idempotent(self, fake_s3, store):
        astore = AsyncObjectStore(store)

        async def close_twice():
            await astore.aclose()
            await astore.aclose()

        asyncio.run(close_twice())
        assert fake_s3.closed

    def test_non_owning_wrapper_leaves_store_open(self, fake_s3, store):
        astore = AsyncObjectStore(store, owns_store=False)

        asyncio.run(astore.aclose())

        assert not fake_s3.closed
        assert store.exists("missing") is False

    def test_exposes_wrapped_store(self, store):
        astore = AsyncObjectStore(store)
        assert astore.store is store
        assert astore.bucket == "test-bucket"
        assert astore.locator("x") == "s3://test-bucket/x"

    def test_task_cancel_stops_transfer_and_cleans_up(self, fake_s3, store, tmp_path):
        store.upload_from_bytes("big.bin", b"0123456789" * 50)
        fake_s3.chunk_delay = 0.01
        started = threading.Event()
        fake_s3.on_chunk = lambda _size: started.set()
        destination = tmp_path / "big.bin"

        async def scenario():
            astore = AsyncObjectStore(store)
            task = asyncio.create_task(
                astore.download_to_path("big.bin", str(destination))
            )
            while not started.is_set():
                await asyncio.sleep(0.005)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())

        assert os.listdir(tmp_path) == []

    def test_task_cancel_stops_upload(self, fake_s3, store, tmp_path):
        source = tmp_path / "big.bin"
        source.write_bytes(b"0123456789" * 50)
        fake_s3.chunk_delay = 0.01
        started = threading.Event()
        fake_s3.on_chunk = lambda _size: started.set()

        async def scenario():
            astore = AsyncObjectStore(store)
            task = asyncio.create_task(astore.upload_from_path("big.bin", str(source)))
            while not started.is_set():
                await asyncio.sleep(0.005)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())

        assert "big.bin" not in fake_s3.objects
