import asyncio
import argparse
import logging
import math
import signal
import sys

from chunkup.config import MB, load_config
from chunkup.client.client import ChunkedUploader
from chunkup.exceptions import UploadError
from chunkup.sync.session import SessionState

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler('chunkup.log')
    ]
)
logger = logging.getLogger(__name__)


def format_eta(seconds) -> str:
    if seconds == math.inf:
        return "--:--"
    minutes, seconds = divmod(int(seconds), 60)
    return f"{minutes:02d}:{seconds:02d}"


async def run_upload(args) -> int:
    """Upload one file and wait for the outcome"""
    logger.info(f"=== Uploading {args.file} ===")

    config = load_config(
        args.config,
        temp_file_path=args.file,
        file_name=args.name,
        upload_url=args.upload_url,
        verify_url=args.verify_url,
        merge_url=args.merge_url,
        chunk_size=args.chunk_size * MB if args.chunk_size else None,
        max_concurrency=args.concurrency,
        max_memory=args.max_memory * MB if args.max_memory else None,
        max_retries=args.retries,
        test_chunks=False if args.no_test_chunks else None,
        auto_memory=True if args.auto_memory else None,
    )

    uploader = ChunkedUploader(config)
    errors = []

    def on_progress(event):
        if event['uploadedSize']:
            logger.info(f"{event['progress'] * 100:.0f}% - "
                        f"{event['uploadedSize']} bytes - "
                        f"{event['averageSpeed'] / MB:.2f} MB/s - "
                        f"ETA {format_eta(event['timeRemaining'])}")

    def on_error(error):
        errors.append(error)
        logger.error(f"{type(error).__name__}: {error}")

    uploader.on('progress', on_progress)
    uploader.on('error', on_error)
    uploader.on('complete', lambda: logger.info(f"✓ {config.file_name} uploaded"))

    # SIGUSR1 toggles pause/resume
    loop = asyncio.get_running_loop()
    if hasattr(signal, 'SIGUSR1'):
        def toggle():
            if uploader.state == SessionState.UPLOADING:
                logger.info("Pausing upload")
                uploader.pause()
            elif uploader.state == SessionState.PAUSED:
                logger.info("Resuming upload")
                uploader.resume()

        loop.add_signal_handler(signal.SIGUSR1, toggle)

    try:
        await uploader.upload()
        state = await uploader.wait()
    finally:
        await uploader.close()

    if state != SessionState.COMPLETE:
        logger.error(f"Upload ended in state {state.value} with {len(errors)} errors")
        return 1
    return 0


def create_parser():
    """Create argument parser"""
    parser = argparse.ArgumentParser(
        description='chunkup - resumable chunked file upload',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Upload with resume support
  chunkup video.mp4 --upload-url http://host/upload \\
      --verify-url http://host/verify --merge-url http://host/merge

  # Settings from a YAML file
  chunkup video.mp4 --config uploader.yaml

  # Pause / resume a running upload
  kill -USR1 <pid>
        """
    )

    parser.add_argument('file', help='File to upload')
    parser.add_argument('--config', help='YAML configuration file')
    parser.add_argument('--name', help='File name reported to the server (default: basename)')

    # Endpoints
    parser.add_argument('--upload-url', help='Chunk upload endpoint')
    parser.add_argument('--verify-url', help='Resume negotiation endpoint')
    parser.add_argument('--merge-url', help='Merge endpoint')

    # Tuning
    parser.add_argument(
        '--chunk-size',
        type=int,
        help='Chunk size in MiB (default: 5)'
    )
    parser.add_argument(
        '--concurrency',
        type=int,
        help='Maximum concurrent chunk uploads (default: 5)'
    )
    parser.add_argument(
        '--max-memory',
        type=int,
        help='Read-ahead memory budget in MiB (default: 100)'
    )
    parser.add_argument(
        '--auto-memory',
        action='store_true',
        help='Cap the memory budget to available system memory'
    )
    parser.add_argument(
        '--retries',
        type=int,
        help='Retries per failed chunk (default: 0)'
    )
    parser.add_argument(
        '--no-test-chunks',
        action='store_true',
        help='Skip hashing and resume negotiation'
    )

    # Logging
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Minimal output'
    )

    return parser


async def main():
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args()

    # Adjust logging level
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.WARNING)

    try:
        return await run_upload(args)
    except UploadError as e:
        logger.error(f"Fatal error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("\nShutdown requested by user")
        return 130


def run():
    """Console script entry point"""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass


if __name__ == '__main__':
    run()
