#  Copyright © 2025 Bentley Systems, Incorporated
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#      http://www.apache.org/licenses/LICENSE-2.0
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.

import asyncio
import io
import tempfile
import typing
from pathlib import Path
from unittest import mock

from parameterized import parameterized

from data import load_test_data
from voe import ClientConfig, ErrorCode, FilePart, VOEClient, VOEError
from voe.common import HTTPHeaderDict, RequestMethod
from voe.common.exceptions import ClientValueError, TransportError
from voe.common.test_tools import API_KEY, BASE_URL, UPLOAD_SERVER, MockResponse, TestTransport, TestWithConnector

_UPLOAD_HEADERS = {"Content-Type": "multipart/form-data", "Accept": "application/json"}


def _ok(content: object) -> MockResponse:
    return MockResponse.json_response(200, content, reason="OK")


class TestClientConstruction(TestWithConnector):
    @parameterized.expand(
        [
            ("empty", ""),
            ("blank", "   "),
            ("none", None),
        ]
    )
    def test_missing_api_key(self, _name: str, api_key: str | None) -> None:
        """Test that the client cannot be created without an API key."""
        with self.assertRaises(VOEError) as cm:
            VOEClient(api_key, transport=self.transport, logger=self.logger)
        self.assertEqual(ErrorCode.MISSING_API_KEY, cm.exception.code)
        self.assertIsNone(cm.exception.response)
        self.transport.open.assert_not_called()
        self.transport.assert_no_requests()

    def test_missing_api_key_without_transport(self) -> None:
        """Test that no transport is created when the API key is missing."""
        with mock.patch("voe.client.AioTransport") as mock_transport:
            with self.assertRaises(VOEError) as cm:
                VOEClient("")
        self.assertEqual(ErrorCode.MISSING_API_KEY, cm.exception.code)
        mock_transport.assert_not_called()

    def test_default_transport(self) -> None:
        with mock.patch("voe.client.AioTransport") as mock_transport:
            client = VOEClient(API_KEY)
        mock_transport.assert_called_once()
        self.assertIs(mock_transport.return_value, client.connector.transport)
        self.assertEqual("https://voe.sx/api/", client.connector.base_url)

    def test_from_config(self) -> None:
        config = ClientConfig(api_key=API_KEY, base_url=BASE_URL, user_agent="unit-test", request_timeout=5)
        with mock.patch("voe.client.AioTransport") as mock_transport:
            client = VOEClient.from_config(config, logger=self.logger)
        mock_transport.assert_called_once_with(user_agent="unit-test")
        self.assertEqual(BASE_URL, client.connector.base_url)
        self.assertEqual(5, client.connector.request_timeout)
        self.assertIs(self.logger, client.connector.logger)

    def test_from_environment(self) -> None:
        with (
            mock.patch.dict("os.environ", {"VOE_API_KEY": "from-env"}),
            mock.patch("voe.client.AioTransport"),
        ):
            client = VOEClient.from_environment(transport=self.transport)
        self.assertIs(self.transport, client.connector.transport)

    @parameterized.expand([("from_config",), ("from_environment",)])
    def test_factories_return_client(self, factory: str) -> None:
        hints = typing.get_type_hints(getattr(VOEClient, factory))
        self.assertIs(VOEClient, hints["return"])

    async def test_context_manager(self) -> None:
        client = VOEClient(API_KEY, transport=self.transport, logger=self.logger, base_url=BASE_URL)
        async with client:
            self.transport.open.assert_called_once()
            self.transport.close.assert_not_called()
        self.transport.close.assert_called_once()


class TestVOEClient(TestWithConnector):
    def setUp(self) -> None:
        super().setUp()
        self.client = VOEClient(API_KEY, transport=self.transport, logger=self.logger, base_url=BASE_URL)

    async def test_get_account_info(self) -> None:
        content = load_test_data("account_info.json")
        self.transport.request.return_value = _ok(content)
        result = await self.client.get_account_info()
        self.assertEqual(content, result)
        self.assert_request_made(RequestMethod.GET, "/account/info")

    async def test_get_account_stats(self) -> None:
        content = load_test_data("account_stats.json")
        self.transport.request.return_value = _ok(content)
        result = await self.client.get_account_stats()
        self.assertEqual(content, result)
        self.assert_request_made(RequestMethod.GET, "/account/stats")

    async def test_get_upload_server(self) -> None:
        self.transport.request.return_value = _ok({"msg": "OK", "status": 200, "result": "https://up.example/x"})
        result = await self.client.get_upload_server()
        self.assertEqual("https://up.example/x", result)
        self.assert_request_made(RequestMethod.GET, "/upload/server")

    async def test_get_upload_server_is_not_cached(self) -> None:
        self.transport.request.side_effect = [
            _ok({"result": "https://up.example/1"}),
            _ok({"result": "https://up.example/2"}),
        ]
        self.assertEqual("https://up.example/1", await self.client.get_upload_server())
        self.assertEqual("https://up.example/2", await self.client.get_upload_server())
        self.transport.assert_n_requests_made(2)

    async def test_get_upload_server_without_result(self) -> None:
        self.transport.request.return_value = _ok({"msg": "OK", "status": 200})
        with self.assertRaises(ClientValueError):
            await self.client.get_upload_server()

    @parameterized.expand(
        [
            ("remote_upload", ("https://example.com/video.mp4",), {}, "/upload/url", {"url": "https://example.com/video.mp4"}),
            ("get_remote_upload_list", (), {}, "/upload/url/list", {}),
            ("get_remote_upload_list", (42,), {}, "/upload/url/list", {"id": 42}),
            ("clone_upload", ("abc123",), {}, "/file/clone", {"file_code": "abc123", "fld_id": 0}),
            ("clone_upload", ("abc123",), {"folder_id": 7}, "/file/clone", {"file_code": "abc123", "fld_id": 7}),
            ("get_file_info", ("abc123,def456",), {}, "/file/info", {"file_code": "abc123,def456"}),
            ("get_file_info", (["abc123", "def456"],), {}, "/file/info", {"file_code": "abc123,def456"}),
            ("list_files", (), {}, "/file/list", {}),
            ("list_files", (), {"page": 2, "per_page": 5}, "/file/list", {"page": 2, "per_page": 5}),
            (
                "list_files",
                (),
                {"page": 1, "per_page": 50, "fld_id": 3, "created": "2024-01-10", "name": "holiday"},
                "/file/list",
                {"page": 1, "per_page": 50, "fld_id": 3, "created": "2024-01-10", "name": "holiday"},
            ),
            ("list_files", (), {"name": "talk"}, "/file/list", {"name": "talk"}),
            ("rename_file", ("abc123", "New title"), {}, "/file/rename", {"file_code": "abc123", "title": "New title"}),
            ("move_file", ("abc123", 9), {}, "/file/move", {"file_code": "abc123", "fld_id": 9}),
            ("delete_file", ("abc123",), {}, "/file/delete", {"file_code": "abc123"}),
        ]
    )
    async def test_json_endpoint(
        self, method_name: str, args: tuple, kwargs: dict, expected_path: str, expected_query: dict
    ) -> None:
        """Test that each JSON endpoint is called with the API key and exactly the expected query parameters."""
        content = {"msg": "OK", "status": 200, "result": {"method": method_name}}
        self.transport.request.return_value = _ok(content)
        result = await getattr(self.client, method_name)(*args, **kwargs)
        self.assertEqual(content, result)
        self.assert_request_made(RequestMethod.GET, expected_path, query_params=expected_query)

    async def test_list_files_returns_payload_verbatim(self) -> None:
        content = load_test_data("file_list.json")
        self.transport.request.return_value = _ok(content)
        result = await self.client.list_files(page=1)
        self.assertEqual(content, result)

    async def test_every_call_manages_transport(self) -> None:
        self.transport.request.return_value = _ok({})
        await self.client.get_account_info()
        await self.client.delete_file("abc123")
        self.assertEqual(2, self.transport.open.await_count)
        self.assertEqual(2, self.transport.close.await_count)

    async def test_request_timeout(self) -> None:
        client = VOEClient(API_KEY, transport=self.transport, logger=self.logger, base_url=BASE_URL, request_timeout=9)
        self.transport.request.return_value = _ok({})
        await client.get_account_info()
        self.assert_request_made(RequestMethod.GET, "/account/info", request_timeout=9)

    async def test_logs_request_and_response(self) -> None:
        self.transport.request.return_value = _ok({})
        await self.client.list_files(page=2)
        self.assertEqual(["Request: GET /file/list", "Response: 200 OK"], self.logger.messages("info"))
        self.logger.error.assert_not_called()

    async def test_api_key_is_not_logged(self) -> None:
        self.transport.request.return_value = _ok({})
        await self.client.get_account_info()
        for message in self.logger.messages("info"):
            self.assertNotIn(API_KEY, message)

    async def test_concurrent_calls(self) -> None:
        """Test that concurrent calls complete independently with their own results."""
        info = load_test_data("account_info.json")
        stats = load_test_data("account_stats.json")

        async def handler(method, url, **_kwargs) -> MockResponse:
            if "/account/info" in url:
                # Let the other request complete first.
                await asyncio.sleep(0.01)
                return _ok(info)
            return _ok(stats)

        self.transport.request.side_effect = handler
        result_info, result_stats = await asyncio.gather(self.client.get_account_info(), self.client.get_account_stats())
        self.assertEqual(info, result_info)
        self.assertEqual(stats, result_stats)
        self.transport.assert_n_requests_made(2)


class TestClientErrors(TestWithConnector):
    def setUp(self) -> None:
        super().setUp()
        self.client = VOEClient(API_KEY, transport=self.transport, logger=self.logger, base_url=BASE_URL)

    async def test_api_error_with_message(self) -> None:
        self.transport.request.return_value = MockResponse.json_response(
            403, {"message": "Invalid key"}, reason="Forbidden"
        )
        with self.assertRaises(VOEError) as cm:
            await self.client.get_account_info()
        error = cm.exception
        self.assertEqual(ErrorCode.API_ERROR, error.code)
        self.assertEqual("Invalid key", error.message)
        self.assertIsNotNone(error.response)
        self.assertEqual(403, error.response.status)
        self.assertEqual(403, error.status)
        self.assertEqual("Forbidden", error.reason)
        self.assertEqual({"message": "Invalid key"}, error.content)

    @parameterized.expand([(400,), (404,), (500,), (503,)])
    async def test_api_error_without_message(self, status: int) -> None:
        self.transport.request.return_value = MockResponse.json_response(status, {"msg": "nope"})
        with self.assertRaises(VOEError) as cm:
            await self.client.delete_file("abc123")
        self.assertEqual(ErrorCode.API_ERROR, cm.exception.code)
        self.assertEqual("API request failed", cm.exception.message)
        self.assertEqual(status, cm.exception.status)

    async def test_api_error_with_text_body(self) -> None:
        self.transport.request.return_value = MockResponse(status_code=502, reason="Bad Gateway", content="<html/>")
        with self.assertRaises(VOEError) as cm:
            await self.client.get_account_stats()
        self.assertEqual(ErrorCode.API_ERROR, cm.exception.code)
        self.assertEqual("API request failed", cm.exception.message)
        self.assertEqual("<html/>", cm.exception.content)

    async def test_api_error_is_logged(self) -> None:
        self.transport.request.return_value = MockResponse.json_response(404, {"message": "No file"}, reason="Not Found")
        with self.assertRaises(VOEError):
            await self.client.get_file_info("missing")
        (message,) = self.logger.messages("error")
        self.assertTrue(message.startswith("API Error: 404 Not Found"))
        self.assertIn("No file", message)

    async def test_network_error(self) -> None:
        cause = TransportError("Could not complete HTTP request", caused_by=TimeoutError())
        self.transport.request.side_effect = cause
        with self.assertRaises(VOEError) as cm:
            await self.client.get_account_info()
        self.assertEqual(ErrorCode.NETWORK_ERROR, cm.exception.code)
        self.assertEqual("Network error", cm.exception.message)
        self.assertIsNone(cm.exception.response)
        self.assertIs(cause, cm.exception.__cause__)
        self.assertEqual(["Network Error: No response received"], self.logger.messages("error"))
        self.transport.close.assert_called_once()

    async def test_request_error(self) -> None:
        self.transport.request.side_effect = ClientValueError("Could not prepare HTTP request")
        with self.assertRaises(VOEError) as cm:
            await self.client.rename_file("abc123", "title")
        self.assertEqual(ErrorCode.REQUEST_ERROR, cm.exception.code)
        self.assertEqual("Could not prepare HTTP request", cm.exception.message)
        self.assertIsNone(cm.exception.response)
        self.assertEqual(["Request Error: Could not prepare HTTP request"], self.logger.messages("error"))

    async def test_errors_are_not_retried(self) -> None:
        self.transport.request.return_value = MockResponse.json_response(500, {"message": "boom"})
        with self.assertRaises(VOEError):
            await self.client.list_files()
        self.transport.assert_n_requests_made(1)


class TestUploadFile(TestWithConnector):
    def setUp(self) -> None:
        super().setUp()
        self.client = VOEClient(API_KEY, transport=self.transport, logger=self.logger, base_url=BASE_URL)
        self.upload_result = load_test_data("upload_result.json")

    def assert_upload_made(self, file_part: FilePart) -> None:
        self.transport.assert_request_made(
            RequestMethod.POST,
            UPLOAD_SERVER,
            headers=_UPLOAD_HEADERS,
            post_params=[("file", file_part)],
            request_timeout=None,
        )

    async def test_upload_bytes(self) -> None:
        self.transport.request.return_value = _ok(self.upload_result)
        result = await self.client.upload_file(UPLOAD_SERVER, b"hello")
        self.assertEqual(self.upload_result, result)
        self.assert_upload_made(FilePart(filename="file", data=b"hello"))

    async def test_upload_does_not_attach_api_key(self) -> None:
        self.transport.request.return_value = _ok(self.upload_result)
        await self.client.upload_file(UPLOAD_SERVER, b"hello")
        url = self.transport.request.call_args.kwargs["url"]
        self.assertEqual(UPLOAD_SERVER, url)
        self.assertNotIn(API_KEY, url)
        self.assertFalse(url.startswith(BASE_URL))

    async def test_upload_with_filename(self) -> None:
        self.transport.request.return_value = _ok(self.upload_result)
        await self.client.upload_file(UPLOAD_SERVER, bytearray(b"hello"), filename="holiday.mp4")
        self.assert_upload_made(FilePart(filename="holiday.mp4", data=b"hello"))

    async def test_upload_file_object(self) -> None:
        self.transport.request.return_value = _ok(self.upload_result)
        file = io.BytesIO(b"video data")
        file.name = "/tmp/videos/talk.mkv"
        await self.client.upload_file(UPLOAD_SERVER, file)
        self.assert_upload_made(FilePart(filename="talk.mkv", data=b"video data"))

    async def test_upload_path(self) -> None:
        self.transport.request.return_value = _ok(self.upload_result)
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "holiday.mp4"
            path.write_bytes(b"\x00\x01\x02")
            await self.client.upload_file(UPLOAD_SERVER, path)
            await self.client.upload_file(UPLOAD_SERVER, str(path))
        self.assert_upload_made(FilePart(filename="holiday.mp4", data=b"\x00\x01\x02"))
        self.transport.assert_n_requests_made(2)

    async def test_upload_logs(self) -> None:
        self.transport.request.return_value = _ok(self.upload_result)
        await self.client.upload_file(UPLOAD_SERVER, b"hello")
        self.assertEqual([f"Request: POST {UPLOAD_SERVER}", "Response: 200 OK"], self.logger.messages("info"))

    async def test_upload_api_error(self) -> None:
        self.transport.request.return_value = MockResponse.json_response(
            413, {"message": "File too large"}, reason="Payload Too Large"
        )
        with self.assertRaises(VOEError) as cm:
            await self.client.upload_file(UPLOAD_SERVER, b"hello")
        self.assertEqual(ErrorCode.API_ERROR, cm.exception.code)
        self.assertEqual("File too large", cm.exception.message)
        self.assertEqual(413, cm.exception.status)

    async def test_upload_network_error(self) -> None:
        self.transport.request.side_effect = TransportError("Could not complete HTTP request")
        with self.assertRaises(VOEError) as cm:
            await self.client.upload_file(UPLOAD_SERVER, b"hello")
        self.assertEqual(ErrorCode.NETWORK_ERROR, cm.exception.code)
        self.assertIsNone(cm.exception.response)

    async def test_upload_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            with self.assertRaises(VOEError) as cm:
                await self.client.upload_file(UPLOAD_SERVER, Path(tmp_dir) / "missing.mp4")
        self.assertEqual(ErrorCode.REQUEST_ERROR, cm.exception.code)
        self.assertIsInstance(cm.exception.__cause__, FileNotFoundError)
        self.transport.assert_no_requests()

    async def test_upload_unsupported_source(self) -> None:
        with self.assertRaises(VOEError) as cm:
            await self.client.upload_file(UPLOAD_SERVER, 12345)
        self.assertEqual(ErrorCode.REQUEST_ERROR, cm.exception.code)
        self.transport.assert_no_requests()

    async def test_upload_text_file_object(self) -> None:
        with self.assertRaises(VOEError) as cm:
            await self.client.upload_file(UPLOAD_SERVER, io.StringIO("text"))
        self.assertEqual(ErrorCode.REQUEST_ERROR, cm.exception.code)
        self.transport.assert_no_requests()

    async def test_upload_headers(self) -> None:
        self.transport.request.return_value = _ok(self.upload_result)
        await self.client.upload_file(UPLOAD_SERVER, b"hello")
        headers = self.transport.request.call_args.kwargs["headers"]
        self.assertIsInstance(headers, HTTPHeaderDict)
        self.assertEqual("multipart/form-data", headers["content-type"])

    async def test_upload_closed_file_object(self) -> None:
        file = io.BytesIO(b"video data")
        file.close()
        with self.assertRaises(VOEError) as cm:
            await self.client.upload_file(UPLOAD_SERVER, file)
        self.assertEqual(ErrorCode.REQUEST_ERROR, cm.exception.code)
        self.assertIsInstance(cm.exception.__cause__, ValueError)
        self.transport.assert_no_requests()

    async def test_upload_undecodable_response(self) -> None:
        """Test that a successful upload with a body that cannot be decoded returns the raw body."""
        self.transport.request.return_value = MockResponse(status_code=200, body=b"\xff\xfe\x00garbage")
        result = await self.client.upload_file(UPLOAD_SERVER, b"hello")
        self.assertEqual(b"\xff\xfe\x00garbage", result)


class TestUndecodableResponses(TestWithConnector):
    def setUp(self) -> None:
        super().setUp()
        self.client = VOEClient(API_KEY, transport=self.transport, logger=self.logger, base_url=BASE_URL)

    async def test_unknown_charset(self) -> None:
        self.transport.request.return_value = MockResponse(
            status_code=200, headers={"Content-Type": "application/json; charset=x-unknown"}, body=b'{"a": 1}'
        )
        self.assertEqual(b'{"a": 1}', await self.client.get_account_info())

    async def test_error_with_unknown_charset(self) -> None:
        self.transport.request.return_value = MockResponse(
            status_code=500, headers={"Content-Type": "text/plain; charset=x-unknown"}, body=b"oops"
        )
        with self.assertRaises(VOEError) as cm:
            await self.client.get_account_stats()
        self.assertEqual(ErrorCode.API_ERROR, cm.exception.code)
        self.assertEqual(b"oops", cm.exception.content)
