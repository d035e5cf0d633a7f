import asyncio
import gzip
import time
import datetime
import email.utils

import h11

from asymedia import logger
from asymedia._version import __version__
from asymedia.common.target import ServerTarget
from asymedia.common.connection import MediaConnection
from asymedia.common.packetizer import Packetizer
from asymedia.server import MediaSocketServer


SERVER_IDENT = " ".join(
    [f"asymedia/{__version__}", h11.PRODUCT_ID]
).encode("ascii")

# bodies below this size go out uncompressed
COMPRESS_MIN_SIZE = 1024
COMPRESSIBLE_TYPES = ("text/", "application/json")


def format_date_time(dt=None):
    """Generate a RFC 7231 / RFC 9110 IMF-fixdate string"""
    if dt is None:
        dt = datetime.datetime.now(datetime.timezone.utc)
    return email.utils.format_datetime(dt, usegmt=True)


def accepts_gzip(accept_encoding):
    """True when an Accept-Encoding value allows gzip (or *) with a non-zero q."""
    if not accept_encoding:
        return False
    for part in accept_encoding.split(','):
        coding, _, params = part.strip().partition(';')
        if coding.strip().lower() not in ('gzip', '*'):
            continue
        q = 1.0
        for param in params.split(';'):
            name, _, value = param.strip().partition('=')
            if name.strip().lower() == 'q':
                try:
                    q = float(value)
                except ValueError:
                    q = 0.0
        return q > 0
    return False


class HTTPConnectionWrapper:

    def __init__(self, client_id, stream:MediaConnection):
        self.client_id = client_id
        self.stream = stream
        self.conn = h11.Connection(h11.SERVER)
        self.last_status = None

    def debug(self, msg):
        logger.debug('[HTTP][%s] %s' % (self.client_id, msg))

    async def send(self, event):
        # ConnectionClosed is never sent from here, closing goes through the stream
        assert type(event) is not h11.ConnectionClosed
        if type(event) is h11.Response:
            self.last_status = event.status_code
        data = self.conn.send(event)
        try:
            await self.stream.write(data)
        except BaseException:
            # If the write raised (client went away, or the task got cancelled)
            # the h11 state is no longer usable for this connection.
            self.conn.send_failed()
            raise

    def response_started(self):
        return self.conn.our_state not in (h11.IDLE, h11.SEND_RESPONSE)

    async def _read_from_peer(self):
        if self.conn.they_are_waiting_for_100_continue:
            self.debug("Sending 100 Continue")
            go_ahead = h11.InformationalResponse(
                status_code=100, headers=[("Date", format_date_time()), ("Server", SERVER_IDENT)]
            )
            await self.send(go_ahead)
        try:
            data = await self.stream.read_one()
        except (ConnectionError, OSError) as exc:
            self.debug('Error reading from peer: %r' % exc)
            # They've stopped talking. Feeding EOF lets h11 wind the state down.
            data = b""
        self.conn.receive_data(data)

    async def next_event(self):
        while True:
            event = self.conn.next_event()
            if event is h11.NEED_DATA:
                await self._read_from_peer()
                continue
            return event

    async def shutdown_and_clean_up(self):
        try:
            await self.stream.close()
        except (ConnectionError, OSError):
            return


class HTTPServerHandler:
    """
    Base request handler. One instance is created per client connection,
    requests are dispatched to do_<METHOD> coroutines.
    """
    def __init__(self, enable_cors=False):
        self._wrapper:HTTPConnectionWrapper = None
        self._request:h11.Request = None
        self.enable_cors = enable_cors
        self.ident = SERVER_IDENT

    @staticmethod
    def format_date_time(dt=None):
        return format_date_time(dt)

    @staticmethod
    def get_header(event, name):
        """Returns the first value of header `name` as str, or None."""
        name = name.lower().encode('ascii')
        for hname, value in event.headers:
            if hname.lower() == name:
                return value.decode('latin-1')
        return None

    def basic_headers(self):
        # HTTP requires these headers in all responses
        headers = [
            ("Date", HTTPServerHandler.format_date_time().encode("ascii")),
            ("Server", self.ident),
        ]
        if self.enable_cors is True:
            headers.append(("Access-Control-Allow-Origin", b"*"))
        return headers

    def allowed_methods(self):
        return sorted(name[3:] for name in dir(self) if name.startswith('do_'))

    def client_accepts_gzip(self):
        if self._request is None:
            return False
        return accepts_gzip(self.get_header(self._request, 'accept-encoding'))

    async def send_simple(self, status_code, body=b'', content_type='text/html; charset=utf-8', extra_headers=None, head_only=False, compress=True):
        """
        Sends a complete response with an in-memory body. Textual bodies are
        gzipped when the client accepts it, pass compress=False for content
        that has to go out byte-exact.
        """
        if isinstance(body, str):
            body = body.encode('utf-8')
        headers = self.basic_headers()
        if extra_headers is not None:
            headers.extend(extra_headers)
        if compress is True and content_type.startswith(COMPRESSIBLE_TYPES):
            headers.append(("Vary", b"Accept-Encoding"))
            if len(body) >= COMPRESS_MIN_SIZE and self.client_accepts_gzip():
                body = gzip.compress(body, compresslevel=6)
                headers.append(("Content-Encoding", b"gzip"))
        headers.extend([
            ("Content-Type", content_type.encode("ascii")),
            ("Content-Length", str(len(body)).encode("ascii")),
        ])
        await self._wrapper.send(h11.Response(status_code=status_code, headers=headers))
        if body and head_only is False:
            await self._wrapper.send(h11.Data(data=body))
        await self._wrapper.send(h11.EndOfMessage())

    async def _process_request(self, wrapper:HTTPConnectionWrapper, request:h11.Request):
        self._wrapper = wrapper
        self._request = request
        started = time.monotonic()
        method = request.method.decode("ascii")
        try:
            func = getattr(self, f"do_{method}", None)
            if func is None:
                allow = ", ".join(self.allowed_methods()).encode("ascii")
                return await self.send_simple(405, b"Method Not Allowed", extra_headers=[("Allow", allow)])
            return await func(request)
        finally:
            duration = (time.monotonic() - started) * 1000
            user_agent = self.get_header(request, 'user-agent') or '-'
            logger.info('[HTTP] %s %s %s %dms - UA: %s' % (
                method,
                request.target.decode('latin-1'),
                wrapper.last_status,
                duration,
                user_agent.replace('\r', '').replace('\n', ''),
            ))


class HTTPServer:
    def __init__(self, client_handler, target:ServerTarget):
        self.target = target
        self.client_handler = client_handler

        self.clients = {}
        self.id_counter = 0
        self.socket_server = None
        self.started_evt = asyncio.Event()

    @property
    def port(self):
        if self.socket_server is None:
            return None
        return self.socket_server.bound_port

    async def __aenter__(self):
        self.__main_task = asyncio.create_task(self.serve())
        await self.started_evt.wait()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.terminate()
        self.__main_task.cancel()

    async def terminate(self):
        for task in list(self.clients.values()):
            task.cancel()
        self.clients = {}
        if self.socket_server is not None:
            self.socket_server.close()

    async def _maybe_send_error_response(self, wrapper:HTTPConnectionWrapper, status_code):
        # A response can only be started if none is in flight already.
        if wrapper.conn.our_state not in (h11.IDLE, h11.SEND_RESPONSE):
            return
        try:
            body = b"bad request"
            headers = [
                ("Date", format_date_time().encode("ascii")),
                ("Server", SERVER_IDENT),
                ("Content-Type", b"text/plain; charset=utf-8"),
                ("Content-Length", str(len(body)).encode("ascii")),
                ("Connection", b"close"),
            ]
            await wrapper.send(h11.Response(status_code=status_code, headers=headers))
            await wrapper.send(h11.Data(data=body))
            await wrapper.send(h11.EndOfMessage())
        except Exception as exc:
            wrapper.debug('Error while sending error response: %r' % exc)

    async def __handle_connection(self, client_id, connection:MediaConnection):
        wrapper = HTTPConnectionWrapper(client_id, connection)
        handler = self.client_handler()
        logger.debug('[HTTP] New client %s connected from %s' % (client_id, connection.get_peer()))
        try:
            while True:
                if wrapper.conn.our_state is h11.MUST_CLOSE or wrapper.conn.their_state is h11.MUST_CLOSE:
                    break
                if wrapper.conn.states == {h11.CLIENT: h11.CLOSED, h11.SERVER: h11.CLOSED}:
                    break
                if wrapper.conn.states == {h11.CLIENT: h11.DONE, h11.SERVER: h11.DONE}:
                    wrapper.conn.start_next_cycle()
                    continue

                try:
                    event = await wrapper.next_event()
                except h11.RemoteProtocolError as exc:
                    wrapper.debug('Protocol error: %r' % exc)
                    await self._maybe_send_error_response(wrapper, exc.error_status_hint)
                    break

                if type(event) is h11.Request:
                    await handler._process_request(wrapper, event)
                    continue
                if type(event) in (h11.Data, h11.EndOfMessage):
                    # request bodies are not consumed by any route
                    continue
                if type(event) is h11.ConnectionClosed:
                    break
                wrapper.debug('Unexpected event type %s' % type(event))
                break

        except (ConnectionError, h11.LocalProtocolError) as exc:
            wrapper.debug('Connection dropped: %r' % exc)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception('[HTTP] Error while handling client %s' % client_id)
        finally:
            if wrapper.conn.our_state in (h11.SEND_BODY, h11.ERROR):
                # headers went out but the body could not be completed
                connection.abort()
            else:
                await wrapper.shutdown_and_clean_up()
            self.clients.pop(client_id, None)

    async def serve(self):
        self.socket_server = MediaSocketServer(self.target, Packetizer())
        listening = asyncio.create_task(self._signal_started())
        try:
            async for connection in self.socket_server.serve():
                client_id = self.id_counter
                self.id_counter += 1
                self.clients[client_id] = asyncio.create_task(self.__handle_connection(client_id, connection))
        finally:
            listening.cancel()

    async def _signal_started(self):
        await self.socket_server.listening_evt.wait()
        self.started_evt.set()
