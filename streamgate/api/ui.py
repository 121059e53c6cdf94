"""HTML for the index page: a one-field form, or the store's file listing."""

from html import escape
from urllib.parse import quote

from streamgate.backend.listing import ListingEntry

_STYLE = """
  body { font-family: system-ui, sans-serif; display: flex; justify-content: center; align-items: center; min-height: 100vh; background: #1e272e; color: #00d2d3; margin: 0; }
  .card { background: #2f3640; padding: 40px; border-radius: 16px; width: 100%; max-width: 500px; text-align: center; box-shadow: 0 10px 30px rgba(0,0,0,0.5); }
  h2 { margin-top: 0; color: #00d2d3; }
  p { color: #8395a7; font-size: 14px; }
  input { width: 100%; padding: 14px; margin-bottom: 20px; background: #1e272e; border: 1px solid #00d2d3; color: white; border-radius: 6px; box-sizing: border-box; outline: none; }
  button { width: 100%; padding: 14px; background: #00d2d3; color: black; border: none; border-radius: 6px; font-weight: bold; cursor: pointer; font-size: 16px; }
  button:hover { background: #01a3a4; }
  ul { list-style: none; padding: 0; text-align: left; }
  li { padding: 6px 0; border-bottom: 1px solid #1e272e; }
  a { color: #00d2d3; text-decoration: none; }
  .dir { color: #8395a7; }
"""

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8"><meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{title}</title>
<style>{style}</style>
</head>
<body>
<div class="card">
{content}
</div>
</body>
</html>
"""

# Per-backend wording for the form.
_FORM_TEXT = {
    "direct": ("WebDAV Player", "Enter the exact file path in your store (e.g. Movies/clip.txt)", "Enter file path..."),
    "link": ("Share Link Player", "Paste a share link to play it in the browser", "Paste share link..."),
}


def _page(title: str, content: str) -> str:
    return _PAGE.format(title=escape(title), style=_STYLE, content=content)


def render_form(backend: str) -> str:
    heading, hint, placeholder = _FORM_TEXT.get(backend, _FORM_TEXT["direct"])
    content = f"""<h2>{escape(heading)}</h2>
<p>{escape(hint)}</p>
<form id="form">
  <input type="text" id="identifier" placeholder="{escape(placeholder)}" required />
  <button type="submit">Play Video</button>
</form>
<script>
  document.getElementById('form').onsubmit = (e) => {{
    e.preventDefault();
    const value = document.getElementById('identifier').value.trim();
    window.location.href = "/stream/" + encodeURIComponent(value);
  }}
</script>"""
    return _page(heading, content)


def render_listing(entries: list[ListingEntry]) -> str:
    items = []
    for entry in entries:
        if entry.is_collection:
            items.append(f'<li class="dir">{escape(entry.name)}/</li>')
        else:
            href = "/stream/" + quote(entry.name, safe="")
            items.append(f'<li><a href="{escape(href)}">{escape(entry.name)}</a></li>')
    body = "\n".join(items) if items else "<li>No files found.</li>"
    content = f"""<h2>WebDAV Player</h2>
<p>{len(entries)} item(s) in the store root</p>
<ul>
{body}
</ul>"""
    return _page("WebDAV Player", content)
