"""
Persistence Gateway Tests
"""
import pytest
import requests
from requests.adapters import BaseAdapter

from radnotebook.workspace.gateway import GatewayError, PersistenceGateway
from radnotebook.workspace.store import WorkspaceStore

BASE_URL = 'http://notebook.local'


class CannedAdapter(BaseAdapter):
    """requests transport answering every request with the same status and body"""

    def __init__(self, status_code, body, content_type='application/json'):
        super().__init__()
        self.status_code = status_code
        self.body = body
        self.content_type = content_type

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        response = requests.Response()
        response.status_code = self.status_code
        response.reason = 'OK' if self.status_code < 400 else 'Error'
        response.headers['Content-Type'] = self.content_type
        response._content = self.body
        response._content_consumed = True
        response.encoding = 'utf-8'
        response.url = request.url
        response.request = request
        return response

    def close(self):
        pass


def _gateway(status_code, body, content_type='application/json'):
    session = requests.Session()
    session.mount(BASE_URL, CannedAdapter(status_code, body, content_type))
    return PersistenceGateway(BASE_URL, session=session)


class TestResponses:
    """Test how response bodies are turned into rows or errors"""

    def test_error_body_message(self):
        gateway = _gateway(400, b'{"error": "Failed to update section"}')
        with pytest.raises(GatewayError) as exc:
            gateway.update('sections', 's1', {'content': 'x'})
        assert exc.value.status_code == 400
        assert exc.value.message == 'Failed to update section'

    def test_html_success_body(self):
        gateway = _gateway(200, b'<html>proxy login</html>', content_type='text/html')
        with pytest.raises(GatewayError) as exc:
            gateway.list('sections', analysis_id='a1')
        assert exc.value.status_code == 200

    def test_empty_listing(self):
        gateway = _gateway(200, b'')
        with pytest.raises(GatewayError):
            gateway.list('projects')

    def test_listing_that_is_not_an_object(self):
        gateway = _gateway(200, b'[1, 2]')
        with pytest.raises(GatewayError):
            gateway.list('projects')

    def test_empty_create_body(self):
        gateway = _gateway(201, b'')
        with pytest.raises(GatewayError):
            gateway.create('projects', {'name': 'Chest CT'})

    def test_delete_without_body(self):
        gateway = _gateway(200, b'')
        assert gateway.delete('projects', 'p1') is None

    def test_unknown_table(self):
        with pytest.raises(ValueError):
            _gateway(200, b'{}').list('patients')

    @pytest.mark.asyncio
    async def test_store_notifies_on_malformed_listing(self):
        store = WorkspaceStore(_gateway(200, b'not json', content_type='text/plain'))
        await store.select_analysis('a1')

        assert store.selected_analysis_id == 'a1'
        assert store.sections.items == []
        assert store.notifier.items[-1].description == 'Failed to load sections'
