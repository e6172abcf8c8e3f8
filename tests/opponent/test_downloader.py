import asyncio

import httpx
import pytest

from thinkfast.opponent.downloader import DownloadCoordinator, DownloadPhase
from thinkfast.opponent.errors import DownloadCancelled, NetworkError

URL = "https://models.example/qwen.gguf"


def _range_start(request: httpx.Request) -> int:
    header = request.headers.get("Range")
    if not header:
        return 0
    return int(header.split("=", 1)[1].rstrip("-"))


def _serving(payload: bytes, requests: list, *, honour_range: bool = True):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        start = _range_start(request)
        if start and honour_range:
            return httpx.Response(206, content=payload[start:])
        return httpx.Response(200, content=payload)

    return handler


def _coordinator(handler, **kwargs) -> DownloadCoordinator:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs.setdefault("progress_interval", 0.0)
    return DownloadCoordinator(client=client, **kwargs)


def test_existing_file_makes_no_request(tmp_path):
    destination = tmp_path / "model.gguf"
    destination.write_bytes(b"ready")

    def handler(request):
        raise AssertionError("no request expected for a complete file")

    async def _run():
        coordinator = _coordinator(handler)
        seen = []
        path = await coordinator.ensure_file(URL, destination, seen.append)
        assert path == destination.absolute()
        assert seen == [1.0]
        assert coordinator.state(destination).phase is DownloadPhase.COMPLETED

    asyncio.run(_run())


def test_fresh_download_moves_part_into_place(tmp_path, payload):
    destination = tmp_path / "models" / "model.gguf"
    requests = []

    async def _run():
        coordinator = _coordinator(_serving(payload, requests), chunk_size=256)
        seen = []
        await coordinator.ensure_file(URL, destination, seen.append)
        assert destination.read_bytes() == payload
        assert not (tmp_path / "models" / "model.gguf.part").exists()
        assert seen[-1] == 1.0
        assert all(0.0 <= value <= 1.0 for value in seen)
        assert seen == sorted(seen)

    asyncio.run(_run())
    assert len(requests) == 1
    assert "Range" not in requests[0].headers


def test_file_io_runs_in_worker_threads(tmp_path, payload, monkeypatch):
    destination = tmp_path / "model.gguf"
    requests = []
    offloaded = []
    to_thread = asyncio.to_thread

    async def _recording_to_thread(func, *args, **kwargs):
        offloaded.append(func.__name__)
        return await to_thread(func, *args, **kwargs)

    monkeypatch.setattr(asyncio, "to_thread", _recording_to_thread)

    async def _run():
        coordinator = _coordinator(_serving(payload, requests), chunk_size=256)
        await coordinator.ensure_file(URL, destination)

    asyncio.run(_run())
    assert destination.read_bytes() == payload
    assert offloaded.count("write") == len(payload) // 256
    assert offloaded[-1] == "_promote"
    assert requests[0].headers["Accept-Encoding"] == "identity"


def test_concurrent_requests_share_one_transfer(tmp_path, payload):
    destination = tmp_path / "model.gguf"
    requests = []

    async def _run():
        coordinator = _coordinator(_serving(payload, requests))
        first, second = await asyncio.gather(
            coordinator.ensure_file(URL, destination),
            coordinator.ensure_file(URL, destination),
        )
        assert first == second == destination.absolute()

    asyncio.run(_run())
    assert len(requests) == 1
    assert destination.read_bytes() == payload


def test_resume_sends_range_and_reports_full_size(tmp_path, payload):
    destination = tmp_path / "model.gguf"
    (tmp_path / "model.gguf.part").write_bytes(payload[:512])
    requests = []

    async def _run():
        coordinator = _coordinator(_serving(payload, requests), chunk_size=512)
        seen = []
        await coordinator.ensure_file(URL, destination, seen.append)
        # First report already accounts for the bytes on disk.
        assert seen[0] == pytest.approx(512 / len(payload))
        assert seen[-1] == 1.0

    asyncio.run(_run())
    assert requests[0].headers["Range"] == "bytes=512-"
    assert destination.read_bytes() == payload


def test_server_ignoring_range_restarts_from_zero(tmp_path, payload):
    destination = tmp_path / "model.gguf"
    (tmp_path / "model.gguf.part").write_bytes(payload[:100])
    requests = []

    async def _run():
        coordinator = _coordinator(_serving(payload, requests, honour_range=False))
        await coordinator.ensure_file(URL, destination)

    asyncio.run(_run())
    assert destination.read_bytes() == payload


def test_range_not_satisfiable_discards_part(tmp_path):
    destination = tmp_path / "model.gguf"
    part = tmp_path / "model.gguf.part"
    part.write_bytes(b"stale")

    def handler(request):
        return httpx.Response(416)

    async def _run():
        coordinator = _coordinator(handler)
        with pytest.raises(NetworkError):
            await coordinator.ensure_file(URL, destination)

    asyncio.run(_run())
    assert not part.exists()
    assert not destination.exists()


def test_http_error_status_fails_without_artifact(tmp_path):
    destination = tmp_path / "model.gguf"

    def handler(request):
        return httpx.Response(404)

    async def _run():
        coordinator = _coordinator(handler)
        with pytest.raises(NetworkError) as excinfo:
            await coordinator.ensure_file(URL, destination)
        assert "404" in excinfo.value.message
        state = coordinator.state(destination)
        assert state.phase is DownloadPhase.FAILED
        assert not coordinator.is_active(destination)

    asyncio.run(_run())
    assert not destination.exists()


def test_transport_error_maps_to_network_error(tmp_path):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def _run():
        coordinator = _coordinator(handler)
        with pytest.raises(NetworkError):
            await coordinator.ensure_file(URL, tmp_path / "model.gguf")

    asyncio.run(_run())


def test_cancel_keeps_part_file_for_resume(tmp_path, payload, gated_stream):
    destination = tmp_path / "model.gguf"
    part = tmp_path / "model.gguf.part"

    async def _run():
        stream = gated_stream(payload[:100], payload[100:])

        def handler(request):
            return httpx.Response(
                200, headers={"Content-Length": str(len(payload))}, stream=stream
            )

        coordinator = _coordinator(handler, chunk_size=10)
        pending = asyncio.create_task(coordinator.ensure_file(URL, destination))
        await stream.started.wait()
        assert coordinator.is_active(destination)
        assert coordinator.cancel(destination) is True

        with pytest.raises(DownloadCancelled):
            await pending
        assert coordinator.state(destination).phase is DownloadPhase.CANCELLED

    asyncio.run(_run())
    assert part.read_bytes() == payload[:100]
    assert not destination.exists()


def test_unknown_length_reports_indeterminate_progress(tmp_path, payload):
    destination = tmp_path / "model.gguf"

    async def _body():
        yield payload[:1000]
        yield payload[1000:]

    def handler(request):
        return httpx.Response(200, content=_body())

    async def _run():
        coordinator = _coordinator(handler, chunk_size=500)
        seen = []
        await coordinator.ensure_file(URL, destination, seen.append)
        assert seen[-1] == 1.0
        assert set(seen[:-1]) == {None}

    asyncio.run(_run())
    assert destination.read_bytes() == payload


def test_cancel_without_transfer_is_noop(tmp_path):
    async def _run():
        coordinator = _coordinator(lambda request: httpx.Response(200))
        assert coordinator.cancel(tmp_path / "nothing.gguf") is False
        await coordinator.aclose()

    asyncio.run(_run())
