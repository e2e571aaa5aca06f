# streamz/frontend.py
"""Server-rendered pages: the video listing and a player pointed at the relay."""
from __future__ import annotations

from html import escape

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from streamz.deps import get_metadata
from streamz.errors import NotFound
from streamz.metadata import MetadataStore, Video

router = APIRouter()

STYLE = """
    body {
      font-family: system-ui, -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
      margin: 0;
      padding: 0;
      background: #020617;
      color: #f9fafb;
    }
    .page {
      max-width: 960px;
      margin: 0 auto;
      padding: 24px 16px 40px;
    }
    header p {
      margin: 0;
      color: #9ca3af;
      font-size: 0.95rem;
    }
    a {
      color: #38bdf8;
    }
    .grid {
      display: grid;
      grid-template-columns: repeat(auto-fill, minmax(260px, 1fr));
      gap: 16px;
    }
    .card {
      border-radius: 16px;
      padding: 16px 18px;
      background: radial-gradient(circle at top left, #111827, #020617);
      box-shadow: 0 18px 40px rgba(0,0,0,0.55);
    }
    .card h3 {
      margin: 0 0 6px;
      font-size: 1rem;
    }
    .tag {
      display: inline-block;
      padding: 2px 10px;
      border-radius: 999px;
      border: 1px solid #374151;
      font-size: 0.75rem;
      color: #e5e7eb;
    }
    .muted {
      font-size: 0.85rem;
      color: #9ca3af;
    }
    video {
      width: 100%;
      max-height: 540px;
      border-radius: 12px;
      background: black;
    }
    footer {
      margin-top: 24px;
      font-size: 0.75rem;
      color: #6b7280;
    }
"""


def _page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <title>{escape(title)}</title>
  <style>{STYLE}</style>
</head>
<body>
  <div class="page">
{body}
    <footer>Streamz</footer>
  </div>
</body>
</html>
"""


def _duration(seconds: int | None) -> str:
    if not seconds:
        return ""
    m, s = divmod(seconds, 60)
    return f"{m}:{s:02d}"


def _card(v: Video) -> str:
    genre = f'<span class="tag">{escape(v.genre.name)}</span>' if v.genre else ""
    return f"""      <a class="card" href="/play?id={escape(v.id)}" style="text-decoration:none;color:inherit;">
        <h3>{escape(v.title)}</h3>
        <p class="muted">{escape(v.description or "")}</p>
        {genre} <span class="muted">{_duration(v.duration)}</span>
      </a>"""


def home_page(videos: list[Video]) -> str:
    if videos:
        items = "\n".join(_card(v) for v in videos)
    else:
        items = '      <p class="muted">No videos uploaded yet.</p>'
    body = f"""    <header style="margin-bottom:24px;">
      <h1>Streamz</h1>
      <p>Pick a video; playback seeks with HTTP range requests.</p>
    </header>
    <div class="grid">
{items}
    </div>"""
    return _page("Streamz", body)


def play_page(video: Video) -> str:
    body = f"""    <p><a href="/">&larr; Back to videos</a></p>
    <div class="card">
      <h2 style="margin-top:0;">{escape(video.title)}</h2>
      <video controls preload="metadata" src="/api/stream/{escape(video.id)}"></video>
      <p class="muted" style="margin-top:8px;">{escape(video.description or "")}</p>
    </div>"""
    return _page(f"{video.title} · Streamz", body)


@router.get("/", response_class=HTMLResponse)
def home(metadata: MetadataStore = Depends(get_metadata)):
    return home_page(metadata.list_videos())


@router.get("/play", response_class=HTMLResponse)
def play(id: str, metadata: MetadataStore = Depends(get_metadata)):
    video = metadata.get_video(id)
    if video is None:
        raise NotFound("Video not found")
    return play_page(video)
