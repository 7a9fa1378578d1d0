"""
Shared HTML layout, map widget and small rendering helpers.
"""
import json
from html import escape

from fastapi.responses import HTMLResponse

LEAFLET_CSS = "https://unpkg.com/leaflet@1.9.4/dist/leaflet.css"
LEAFLET_JS = "https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"
TILE_URL = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"

# Links shown in the header, by user_type.
_NAV_BY_TYPE = {
    "professional": [("/search", "Find jobs"), ("/messages", "Messages"), ("/profile", "My profile"), ("/cv/builder", "My CV"), ("/jobs/saved", "Saved")],
    "contractor": [("/tasks", "Find tasks"), ("/contractors", "Contractors"), ("/messages", "Messages"), ("/profile", "My profile"), ("/cv/builder", "My CV"), ("/jobs/saved", "Saved")],
    "company": [("/contractors", "Find people"), ("/jobs/new", "Post a job"), ("/messages", "Messages"), ("/billing", "Subscription"), ("/jobs/saved", "Saved")],
    "homeowner": [("/contractors", "Find tradespeople"), ("/jobs/new", "Post a task"), ("/messages", "Messages")],
    "admin": [("/admin", "Admin"), ("/admin/users", "Users"), ("/admin/reports", "Reports"), ("/admin/settings", "Settings")],
}


def e(value) -> str:
    """HTML-escape anything, treating None as empty."""
    return escape("" if value is None else str(value))


def _nav_links(user: dict | None) -> str:
    if not user:
        links = [("/search", "Jobs"), ("/tasks", "Tasks"), ("/contractors", "Contractors"), ("/signup", "Sign up"), ("/login", "Login")]
    else:
        links = [("/dashboard", "Dashboard")] + _NAV_BY_TYPE.get(user.get("user_type"), []) + [("/logout", "Logout")]
    return "\n".join(f'<a href="{href}">{label}</a>' for href, label in links)


def render_map(center, markers, element_id: str = "map", zoom: int = 11) -> str:
    """
    A Leaflet map centred on (lat, lng). Each marker is a dict with
    latitude, longitude, title and optional url.
    """
    points = [
        {
            "lat": float(m["latitude"]),
            "lng": float(m["longitude"]),
            "title": e(m.get("title")),
            "url": m.get("url") or "",
        }
        for m in markers
        if m.get("latitude") is not None and m.get("longitude") is not None
    ]
    lat, lng = center
    return f"""
    <link rel="stylesheet" href="{LEAFLET_CSS}" />
    <div id="{element_id}" class="map"></div>
    <script src="{LEAFLET_JS}"></script>
    <script>
      (function () {{
        var map = L.map("{element_id}").setView([{float(lat)}, {float(lng)}], {int(zoom)});
        L.tileLayer("{TILE_URL}", {{ maxZoom: 19, attribution: "&copy; OpenStreetMap contributors" }}).addTo(map);
        var points = {json.dumps(points)};
        points.forEach(function (p) {{
          var label = p.url ? '<a href="' + p.url + '">' + p.title + '</a>' : p.title;
          L.marker([p.lat, p.lng]).addTo(map).bindPopup(label);
        }});
      }})();
    </script>
    """


def render_errors(errors) -> str:
    if not errors:
        return ""
    items = errors.values() if isinstance(errors, dict) else errors
    return '<div class="error">' + "".join(f"<p>{e(msg)}</p>" for msg in items) + "</div>"


def render_page(title: str, body: str, user: dict | None = None, status_code: int = 200) -> HTMLResponse:
    if user:
        signed_in_text = f'Signed in as <strong>{e(user.get("email"))}</strong> ({e(user.get("user_type"))})'
    else:
        signed_in_text = "Not signed in"

    html = f"""
    <!DOCTYPE html>
    <html lang="en">
      <head>
        <meta charset="utf-8" />
        <meta name="viewport" content="width=device-width, initial-scale=1" />
        <title>{e(title)} | Open Job Market</title>
        <style>
          :root {{ color-scheme: dark; }}
          * {{ box-sizing: border-box; }}
          body {{
            font-family: system-ui, -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
            margin: 0;
            background: #020617;
            color: #e5e7eb;
          }}
          .page {{ max-width: 1100px; margin: 0 auto; padding: 1.5rem 1rem 3rem; }}
          header {{
            display: flex;
            flex-wrap: wrap;
            justify-content: space-between;
            align-items: center;
            gap: 0.75rem;
            margin-bottom: 1.5rem;
            padding: 0.75rem 1rem;
            background: linear-gradient(90deg, rgba(56,189,248,0.08), rgba(34,197,94,0.08));
            border: 1px solid #1f2937;
            border-radius: 0.75rem;
          }}
          header h1 {{ font-size: 1.4rem; margin: 0; }}
          nav {{ display: flex; flex-wrap: wrap; gap: 0.5rem; }}
          nav a {{
            text-decoration: none;
            color: #e5e7eb;
            font-size: 0.9rem;
            padding: 6px 10px;
            border-radius: 8px;
            background: rgba(255,255,255,0.04);
          }}
          nav a:hover {{ color: #38bdf8; }}
          .signed-in {{ font-size: 0.8rem; color: #9ca3af; margin-top: 0.25rem; }}
          a {{ color: #38bdf8; }}
          .card {{
            border-radius: 0.75rem;
            border: 1px solid #1f2937;
            padding: 1rem 1.25rem;
            margin-bottom: 1rem;
          }}
          .form-card {{ max-width: 760px; margin: 0 auto; }}
          label {{ display: block; margin-top: 1rem; font-size: 0.95rem; }}
          input:not([type="checkbox"]):not([type="radio"]), select, textarea {{
            width: 100%;
            padding: 0.5rem;
            margin-top: 0.25rem;
            border-radius: 0.375rem;
            border: 1px solid #4b5563;
            background: #020617;
            color: #e5e7eb;
          }}
          button {{
            margin-top: 1rem;
            padding: 0.6rem 1.2rem;
            border-radius: 0.5rem;
            border: none;
            background: #22c55e;
            color: #022c22;
            font-weight: 600;
            cursor: pointer;
          }}
          button.danger {{ background: #ef4444; color: #fff; }}
          table {{ width: 100%; border-collapse: collapse; margin-top: 1rem; font-size: 0.9rem; }}
          th, td {{ border: 1px solid #1f2937; padding: 0.4rem 0.6rem; vertical-align: top; }}
          th {{ background: #111827; text-align: left; }}
          .muted {{ color: #9ca3af; font-size: 0.85rem; }}
          .error {{ color: #fca5a5; border: 1px solid #7f1d1d; border-radius: 0.5rem; padding: 0.5rem 0.75rem; }}
          .ok {{ color: #86efac; }}
          .badge {{ font-size: 0.75rem; padding: 2px 8px; border-radius: 999px; background: #1f2937; }}
          .stats {{ display: flex; gap: 0.75rem; margin-bottom: 1rem; flex-wrap: wrap; }}
          .stat {{ flex: 0 0 150px; padding: 0.6rem 0.8rem; border-radius: 0.75rem; border: 1px solid #1f2937; }}
          .stat .label {{ font-size: 0.75rem; color: #9ca3af; }}
          .stat .value {{ font-size: 1.2rem; font-weight: 600; }}
          .map {{ height: 420px; border-radius: 0.75rem; border: 1px solid #1f2937; margin: 1rem 0; }}
          footer {{
            margin-top: 2.5rem;
            padding: 1.25rem 0;
            border-top: 1px solid #1f2937;
            font-size: 0.9rem;
            text-align: center;
          }}
        </style>
      </head>
      <body>
        <div class="page">
          <header>
            <div>
              <h1><a href="/" style="color:inherit;text-decoration:none;">Open Job Market</a> &middot; {e(title)}</h1>
              <div class="signed-in">{signed_in_text}</div>
            </div>
            <nav>
              {_nav_links(user)}
            </nav>
          </header>
          <main>
            {body}
          </main>
          <footer>
            <div><strong>(c) 2025 Open Job Market.</strong> All rights reserved.</div>
            <div><a href="/privacy">Privacy</a> &middot; <a href="/terms">Terms</a></div>
          </footer>
        </div>
      </body>
    </html>
    """
    return HTMLResponse(content=html, status_code=status_code)
