# streamz/origin.py
"""Bulk-upload every .mp4 in a directory through POST /api/videos."""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional

import httpx

UPLOAD_PATH = "/api/videos"


def find_videos(videos_dir: Path) -> List[Path]:
    if not videos_dir.is_dir():
        print(f"[origin] ERROR: missing videos dir: {videos_dir}", file=sys.stderr)
        sys.exit(2)
    files = sorted(videos_dir.glob("*.mp4"))
    if not files:
        print(f"[origin] ERROR: no .mp4 files found in {videos_dir}", file=sys.stderr)
        sys.exit(2)
    return files


def upload_one(client: httpx.Client, path: Path) -> tuple[bool, str]:
    data = {"title": path.stem.replace("_", " ")}
    try:
        with path.open("rb") as f:
            r = client.post(UPLOAD_PATH, data=data, files={"video": (path.name, f, "video/mp4")})
    except httpx.HTTPError as e:
        return False, f"EXC {type(e).__name__}: {e}"
    if r.status_code == 201:
        return True, f"OK ({r.json()['video']['id']})"
    return False, f"HTTP {r.status_code} {r.text[:120]}"


def main(argv: Optional[List[str]] = None, transport: Optional[httpx.BaseTransport] = None) -> int:
    parser = argparse.ArgumentParser(prog="streamz-origin", description=__doc__)
    parser.add_argument("videos_dir", type=Path)
    parser.add_argument("--api", default=os.environ.get("STREAMZ_API", "http://127.0.0.1:3001"))
    parser.add_argument("--token", default=os.environ.get("STREAMZ_ADMIN_TOKEN"))
    parser.add_argument("--timeout", type=float, default=60.0)
    args = parser.parse_args(argv)

    if not args.token:
        print("[origin] ERROR: admin token required (--token or STREAMZ_ADMIN_TOKEN)", file=sys.stderr)
        return 2

    files = find_videos(args.videos_dir)
    print(f"[origin] API           : {args.api}")
    print(f"[origin] Videos dir    : {args.videos_dir}")
    print(f"[origin] Files to send : {', '.join(p.name for p in files)}")
    print("--------------------------------------------------")

    ok = fail = 0
    headers = {"Authorization": f"Bearer {args.token}"}
    with httpx.Client(base_url=args.api, headers=headers, timeout=args.timeout, transport=transport) as client:
        for p in files:
            success, msg = upload_one(client, p)
            print(f"[origin] {'SUCCESS' if success else 'FAIL'}: {p.name}  [{msg}]")
            ok += 1 if success else 0
            fail += 0 if success else 1

    print("\n[origin] Upload summary")
    print("--------------------------------------------------")
    print(f"  Success: {ok}")
    print(f"  Failed : {fail}")
    return 2 if fail else 0


if __name__ == "__main__":
    sys.exit(main())
