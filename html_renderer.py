# html_renderer.py
from __future__ import annotations
from typing import Dict
import html


def _confidence_cell(value) -> str:
    try:
        conf = float(value or 0.0)
    except (TypeError, ValueError):
        conf = 0.0
    cls = "hi" if conf >= 0.9 else ("mid" if conf >= 0.5 else "lo")
    return f'<td class="conf {cls}">{conf:.2f}</td>'


def render_html(data: Dict) -> str:
    playlist_name = html.escape(str(data.get("playlist_name") or ""))
    playlist_url = str(data.get("playlist_url") or "")
    tracks = data.get("tracks") or []

    rows = []
    for t in tracks:
        title = html.escape(str(t.get('title') or ''))
        artist = html.escape(str(t.get('artist') or ''))
        album = html.escape(str(t.get('album') or ''))
        duration = html.escape(str(t.get('duration') or ''))
        position = html.escape(str(t.get('playlist_position') or ''))
        url = str(t.get('url') or '')
        if url:
            title = f'<a href="{html.escape(url)}" target="_blank">{title}</a>'
        validated = "✓" if t.get("validated") else ""

        row = f"""
        <tr>
          <td>{position}</td>
          <td>{title}</td>
          <td>{artist}</td>
          <td>{album}</td>
          <td>{duration}</td>
          {_confidence_cell(t.get('confidence'))}
          <td>{validated}</td>
        </tr>
        """
        rows.append(row)

    rows_html = "\n".join(rows)
    expected = data.get("expected_count")
    summary = f"{len(tracks)} tracks"
    if expected:
        summary += f" (page reports {int(expected)})"
    heading = playlist_name
    if playlist_url:
        heading = f'<a href="{html.escape(playlist_url)}" target="_blank">{playlist_name}</a>'

    page = f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <title>{playlist_name} - Amazon Music Scraper</title>
  <style>
    body {{
      font-family: system-ui, -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
      padding: 24px;
    }}
    table {{
      border-collapse: collapse;
      width: 100%;
    }}
    th, td {{
      border: 1px solid #ccc;
      padding: 6px 8px;
      font-size: 12px;
    }}
    th {{
      background: #f5f5f5;
    }}
    a {{
      text-decoration: none;
    }}
    .conf.hi {{ color: #1a7f37; }}
    .conf.mid {{ color: #9a6700; }}
    .conf.lo {{ color: #cf222e; }}
  </style>
</head>
<body>
  <h1>{heading}</h1>
  <p>{html.escape(summary)}</p>
  <table>
    <thead>
      <tr>
        <th>#</th>
        <th>Title</th>
        <th>Artist</th>
        <th>Album</th>
        <th>Duration</th>
        <th>Confidence</th>
        <th>Validated</th>
      </tr>
    </thead>
    <tbody>
      {rows_html}
    </tbody>
  </table>
</body>
</html>
"""
    return page
