#!/usr/bin/env python3
"""
LAN Media Server

Shares a folder of videos, images and audio over HTTP:
- Folder browsing with comic detection for folders that only hold images
- Video player, comic viewer and audio playlist pages
- Byte range and conditional request support for seeking and caching
- Protection against directory traversal attacks

Usage:
    asymedia-server [directory] [--host HOST] [--port PORT]

Example:
    asymedia-server ~/Videos --host 0.0.0.0 --port 3000
"""

import os
import sys
import asyncio
import logging
import argparse

from asymedia import logger
from asymedia._version import __version__
from asymedia.config import MediaServerSettings
from asymedia.common.target import ServerTarget, ServerProto
from asymedia.http.httpserver import HTTPServer
from asymedia.media.handler import MediaHandler
from asymedia.media.listing import ListingCache


def build_server(config:MediaServerSettings):
    """Returns (HTTPServer, None) or (None, err)"""
    try:
        listing_cache = ListingCache(config.LISTING_CACHE_TTL)
        handler_factory = lambda: MediaHandler(
            config.MEDIA_ROOT,
            listing_cache=listing_cache,
            chunk_size=config.CHUNK_SIZE,
            image_cache_control=config.IMAGE_CACHE_CONTROL,
            default_cache_control=config.DEFAULT_CACHE_CONTROL,
            enable_cors=config.ENABLE_CORS,
        )
        protocol = ServerProto.SERVER_SSL_TCP if config.USE_SSL else ServerProto.SERVER_TCP
        target = ServerTarget(config.HOST, config.PORT, protocol)
        return HTTPServer(handler_factory, target), None
    except Exception as e:
        return None, e


async def _log_startup(server:HTTPServer, config:MediaServerSettings):
    await server.started_evt.wait()
    logger.info('Media server started, open %s' % server.target.get_url(server.port))
    logger.info('Sharing folder: %s' % config.MEDIA_ROOT)
    logger.info('Python %s, PID: %s' % (sys.version.split()[0], os.getpid()))


async def run_media_server(config:MediaServerSettings):
    server, err = build_server(config)
    if err is not None:
        raise err

    startup_task = asyncio.create_task(_log_startup(server, config))
    try:
        await server.serve()
    finally:
        startup_task.cancel()
        await server.terminate()
        logger.info('Media server stopped')


def main():
    """
    Main entry point for the media server.
    """
    parser = argparse.ArgumentParser(
        description='Asymedia - LAN media server with range request streaming',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  %(prog)s                                  # Share the current directory on 0.0.0.0:3000
  %(prog)s /home/user/Videos                # Share a specific folder
  %(prog)s /home/user/Videos --port 9000    # Use a custom port
  %(prog)s /home/user/Videos --ssl          # HTTPS with a self-signed certificate
  %(prog)s /home/user/Videos --debug        # Verbose logging

Environment variables ASYMEDIA_ROOT, ASYMEDIA_HOST, ASYMEDIA_PORT, ASYMEDIA_SSL,
ASYMEDIA_CORS, ASYMEDIA_CHUNK_SIZE, ASYMEDIA_LISTING_CACHE_TTL and ASYMEDIA_LOG_LEVEL
(debug, info, warn, error) set the defaults.
        ''')

    parser.add_argument('directory', nargs='?', help='Folder to share (default: ASYMEDIA_ROOT or the current directory)')
    parser.add_argument('--host', '-H', help='Host to bind to (default: %s)' % MediaServerSettings.HOST)
    parser.add_argument('--port', '-p', type=int, help='Port to bind to (default: %s)' % MediaServerSettings.PORT)
    parser.add_argument('--ssl', action='store_true', default=None, help='Serve HTTPS with a self-signed certificate')
    parser.add_argument('--no-cors', action='store_true', help='Do not send Access-Control-Allow-Origin')
    parser.add_argument('--cache-ttl', type=float, help='Seconds a rendered folder listing stays cached, 0 disables (default: %s)' % MediaServerSettings.LISTING_CACHE_TTL)
    parser.add_argument('--chunk-size', type=int, help='Streaming chunk size in bytes (default: %s)' % MediaServerSettings.CHUNK_SIZE)
    parser.add_argument('--debug', '-d', action='store_true', help='Enable debug logging, overrides ASYMEDIA_LOG_LEVEL')
    parser.add_argument('--version', '-v', action='version', version='Asymedia %s' % __version__)

    args = parser.parse_args()

    if args.port is not None and (args.port < 0 or args.port > 65535):
        print(f"Error: Port must be between 0 and 65535, got {args.port}")
        sys.exit(1)

    if args.chunk_size is not None and args.chunk_size < 1024:
        print(f"Error: chunk-size must be at least 1024 bytes, got {args.chunk_size}")
        sys.exit(1)

    config = MediaServerSettings(
        MEDIA_ROOT=args.directory,
        HOST=args.host,
        PORT=args.port,
        USE_SSL=args.ssl,
        ENABLE_CORS=False if args.no_cors else None,
        LISTING_CACHE_TTL=args.cache_ttl,
        CHUNK_SIZE=args.chunk_size,
    )

    if args.debug:
        logger.setLevel(logging.DEBUG)
    else:
        try:
            logger.setLevel(config.get_log_level())
        except ValueError as e:
            print(f"Error: {e}, expected one of debug, info, warn, error")
            sys.exit(1)

    try:
        config.ensure_dirs()
    except OSError as e:
        print(f"Error: Unable to create media folder {config.MEDIA_ROOT}: {e}")
        sys.exit(1)

    if not config.MEDIA_ROOT.is_dir():
        print(f"Error: '{config.MEDIA_ROOT}' is not a directory")
        sys.exit(1)

    logger.debug(str(config))

    try:
        asyncio.run(run_media_server(config))
    except KeyboardInterrupt:
        print("\nServer stopped by user")
    except Exception as e:
        print(f"Failed to start server: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
