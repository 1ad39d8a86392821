"""
Caddyfile templates.

Templates use {{name}} placeholders. {{WEBSOCKET_HEADERS}} is special: it is
expanded into the multi-line snippet below, re-indented to the column the
placeholder sits at (see template_loader.render_template).
"""

from types import MappingProxyType
from typing import Mapping, Optional

WEBSOCKET_HEADERS_PLACEHOLDER = "{{WEBSOCKET_HEADERS}}"

WEBSOCKET_HEADERS = """header_up Upgrade {http.request.header.Upgrade}
header_up Connection {http.request.header.Connection}
header_up Host {http.request.header.Host}
header_up X-Real-IP {http.request.header.X-Real-IP}
header_up X-Forwarded-For {http.request.header.X-Forwarded-For}
header_up X-Forwarded-Proto {http.request.header.X-Forwarded-Proto}"""

# Shared body of the :80 block and the system domain block: API, websockets,
# project imports and the control panel UI fallback.
_CONTROL_PLANE_ROUTES = """  # WebSocket support for realtime updates
  @websocket_realtime {
    path /api/realtime*
  }
  handle @websocket_realtime {
    reverse_proxy 127.0.0.1:{{API_PORT}} {
      {{WEBSOCKET_HEADERS}}
    }
  }

  # WebSocket support for project logs
  @websocket_logs {
    path /api/logs/*
  }
  handle @websocket_logs {
    reverse_proxy 127.0.0.1:{{API_PORT}} {
      {{WEBSOCKET_HEADERS}}
    }
  }

  # Regular API requests
  handle /api/* {
    request_body {
      max_size 512MB
    }
    reverse_proxy 127.0.0.1:{{API_PORT}} {
      transport http {
        read_timeout 10m
        write_timeout 10m
      }
    }
  }

  # Deployed projects - Import all site configs
  import {{SITES_DIR}}/*.caddy

  # Admin panel UI (fallback - must be last)
  handle {
    root * {{UI_DIST_DIR}}
    try_files {path} /index.html
    file_server
    encode gzip
  }"""

MAIN_CADDYFILE = """# proxyplane:global-start
{
  {{GLOBAL_OPTIONS}}
}
# proxyplane:global-end

# proxyplane:main-start
:80 {
""" + _CONTROL_PLANE_ROUTES + """
}
# proxyplane:main-end
"""

MAIN_WITH_SYSTEM = """# proxyplane:global-start
{
  admin {{ADMIN_ADDRESS}}
}
# proxyplane:global-end

# Import system domain configuration (HTTPS)
import {{SYSTEM_CADDY_PATH}}

# proxyplane:main-start
# Fallback HTTP access (IP-based)
:80 {
""" + _CONTROL_PLANE_ROUTES + """
}
# proxyplane:main-end
"""

SYSTEM_DOMAIN = """# System Control Panel - {{domain}}
# Auto-generated - Do not edit manually

{{domain}} {
""" + _CONTROL_PLANE_ROUTES + """

  # Automatic HTTPS: Caddy obtains and renews certificates for {{domain}}
}
"""

PROJECT_STATIC_DOMAIN = """# Domain: {{domain}}
{{domain}} {
  root * {{buildPath}}
  file_server
  try_files {path} /index.html

  # Enable compression
  encode gzip

  # Auto HTTPS (use 'tls internal' for local dev)
  tls internal
}"""

PROJECT_DYNAMIC_DOMAIN = """# Domain: {{domain}}
{{domain}} {
  reverse_proxy 127.0.0.1:{{port}} {
    # WebSocket support
    {{WEBSOCKET_HEADERS}}
  }

  # Enable compression
  encode gzip

  # Auto HTTPS
  tls internal
}"""

PROJECT_STATIC_PATH = """handle_path {{projectPath}}* {
    root * {{buildPath}}
    try_files {path} /index.html
    file_server
    encode gzip
  }"""

PROJECT_DYNAMIC_PATH = """handle_path {{projectPath}}* {
    reverse_proxy 127.0.0.1:{{port}} {
      # WebSocket support
      {{WEBSOCKET_HEADERS}}
      # Pass original path info to backend
      header_up X-Forwarded-Prefix {{projectPath}}
      header_up X-Original-URI {uri}
    }
    encode gzip
  }"""

TemplateStore = Mapping[str, str]

# Template name -> template text. Read-only; build a new store to override.
TEMPLATES: TemplateStore = MappingProxyType({
    "main-caddyfile": MAIN_CADDYFILE,
    "main-with-system": MAIN_WITH_SYSTEM,
    "system-domain": SYSTEM_DOMAIN,
    "project-static-domain": PROJECT_STATIC_DOMAIN,
    "project-dynamic-domain": PROJECT_DYNAMIC_DOMAIN,
    "project-static-path": PROJECT_STATIC_PATH,
    "project-dynamic-path": PROJECT_DYNAMIC_PATH,
})


def build_template_store(overrides: Optional[Mapping[str, str]] = None) -> TemplateStore:
    """Return an immutable store of the default templates plus overrides."""
    return MappingProxyType({**TEMPLATES, **(overrides or {})})
