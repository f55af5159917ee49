"""Tests for the /metrics HTTP endpoint."""

import socket
import urllib.error

import pytest

from conftest import scrape, samples_by_name
from runner.snapshot_server import SnapshotServer


@pytest.fixture
def server(registry):
    registry.register_gauge('fake_gpu_util', 'Utilization.', ['gpu'])
    registry.set('fake_gpu_util', 42.0, {'gpu': '0'})

    server = SnapshotServer(registry, 0, "127.0.0.1")
    server.start()
    yield server
    server.stop()


class TestSnapshotServer:
    def test_serves_metrics(self, server):
        status, content_type, body = scrape(server.url)

        assert status == 200
        assert content_type.startswith('text/plain')
        samples = samples_by_name(body)
        assert samples['fake_gpu_util'][0].value == 42.0

    def test_reads_current_value_on_each_request(self, registry, server):
        registry.set('fake_gpu_util', 7.5, {'gpu': '0'})
        _, _, body = scrape(server.url)
        assert samples_by_name(body)['fake_gpu_util'][0].value == 7.5

    def test_query_string_ignored(self, server):
        status, _, body = scrape(server.url + "?name[]=other")
        assert status == 200
        assert 'fake_gpu_util' in body

    def test_unknown_path_is_404(self, server):
        with pytest.raises(urllib.error.HTTPError) as excinfo:
            scrape(f"http://127.0.0.1:{server.port}/")
        assert excinfo.value.code == 404

    def test_bound_port_reported(self, server):
        assert server.port > 0
        assert server.url == f"http://127.0.0.1:{server.port}/metrics"

    def test_port_in_use(self, registry):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as occupied:
            occupied.bind(("127.0.0.1", 0))
            occupied.listen(1)
            port = occupied.getsockname()[1]

            with pytest.raises(OSError):
                SnapshotServer(registry, port, "127.0.0.1").start()

    def test_stop_is_idempotent(self, registry):
        server = SnapshotServer(registry, 0, "127.0.0.1")
        server.start()
        server.stop()
        server.stop()
