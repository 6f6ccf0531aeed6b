"""Upload every PDF of a folder to a running server's ``/api/documents`` endpoint.

Only runs when ``UPLOAD_DOCUMENTS=true`` so it can sit in deployment hooks.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import requests
from dotenv import load_dotenv

from chat_pipeline.utils import setup_logging

logger = logging.getLogger(__name__)


def upload_documents(api_url: str, data_folder: str, *, timeout: int = 300) -> int:
    """Post each ``*.pdf`` in ``data_folder``; returns the number uploaded."""
    endpoint = f"{api_url.rstrip('/')}/api/documents"
    files = sorted(Path(data_folder).glob("*.pdf"))
    logger.info("Uploading %d PDF files from %s to %s", len(files), data_folder, endpoint)
    for path in files:
        with path.open("rb") as handle:
            response = requests.post(
                endpoint,
                files={"file": (path.name, handle, "application/pdf")},
                timeout=timeout,
            )
        response.raise_for_status()
        print(f"{path.name}: {response.json().get('message', '')}")
    return len(files)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Upload PDF documents to the chat server.")
    parser.add_argument("api_url", help="Base URL of the server, e.g. http://localhost:8010.")
    parser.add_argument("--data_folder", default="data", help="Folder containing the PDF files.")
    parser.add_argument("--log_dir", help="Directory for application logs.")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    load_dotenv()
    if os.environ.get("UPLOAD_DOCUMENTS", "").lower() != "true":
        print("Skipping document upload (set UPLOAD_DOCUMENTS=true to enable).")
        return

    try:
        args = parse_args(argv)
    except SystemExit as exc:
        if exc.code:
            sys.exit(1)
        raise
    setup_logging(args.log_dir, logging.INFO)

    try:
        upload_documents(args.api_url, args.data_folder)
    except (requests.RequestException, OSError, ValueError):
        logger.exception("Error uploading documents")
        sys.exit(1)


if __name__ == "__main__":
    main()
