"""Static HTML for the landing page and the dashboard (no templating engine)."""

from __future__ import annotations

import html
from typing import Optional

_ERROR_MESSAGES = {
    "no_code": "Discord did not return an authorization code.",
    "auth_failed": "Discord login failed. Please try again.",
}

_LANDING_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Bot Hosting</title>
</head>
<body>
  <main>
    <h1>Bot Hosting</h1>
    {error_block}
    <p>Sign in with your Discord account to get a free bot hosting slot.</p>
    <a href="/api/auth/discord">Login with Discord</a>
  </main>
</body>
</html>
"""

# Provisioning request mirrors the panel egg variables:
# user_uploaded_files -> USER_UPLOAD, auto_update -> AUTO_UPDATE,
# mainFile -> PY_FILE, extraPackages -> PY_PACKAGES.
_DASHBOARD_HTML = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Dashboard</title>
</head>
<body>
  <header>
    <h1>Dashboard</h1>
    <button id="logout">Logout</button>
  </header>
  <p id="loading">Loading...</p>
  <main id="content" hidden>
    <section>
      <h2>Your Account</h2>
      <dl>
        <dt>Username</dt><dd id="username"></dd>
        <dt>Email</dt><dd id="email"></dd>
        <dt>Discord ID</dt><dd id="discord-id"></dd>
      </dl>
    </section>
    <section>
      <h2>Bot Hosting</h2>
      <div id="create-block">
        <p>Ready to get your bot hosting slot? Click below to create your server.</p>
        <button id="create">Create Bot Server</button>
      </div>
      <div id="created-block" hidden>
        <h3>Server Created!</h3>
        <p>Your bot hosting server has been successfully created.</p>
        <dl>
          <dt>Server Name</dt><dd id="server-name"></dd>
          <dt>Resources</dt><dd>200MB RAM, 500MB Storage</dd>
          <dt>Access Panel</dt><dd>Check your email for panel access credentials or contact support.</dd>
        </dl>
      </div>
    </section>
  </main>
  <script>
    let user = null;

    async function fetchUser() {
      const r = await fetch("/api/user", { credentials: "same-origin" });
      if (!r.ok) {
        window.location.href = "/";
        return;
      }
      user = await r.json();
      document.getElementById("username").textContent = user.username;
      document.getElementById("email").textContent = user.email || "";
      document.getElementById("discord-id").textContent = user.id;
      document.getElementById("loading").hidden = true;
      document.getElementById("content").hidden = false;
    }

    async function createServer() {
      const button = document.getElementById("create");
      button.disabled = true;
      button.textContent = "Creating Server...";
      try {
        const r = await fetch("/api/create-server", {
          method: "POST",
          credentials: "same-origin",
          headers: { "Content-Type": "application/json" },
          body: JSON.stringify({
            user_uploaded_files: false,
            auto_update: false,
            mainFile: "main.py",
            extraPackages: "discord.py",
          }),
        });
        if (!r.ok) {
          console.error("Failed to create server:", await r.text());
          alert("Failed to create server. Check console for more info.");
          return;
        }
        document.getElementById("server-name").textContent = user.username + "-bot";
        document.getElementById("create-block").hidden = true;
        document.getElementById("created-block").hidden = false;
      } finally {
        button.disabled = false;
        button.textContent = "Create Bot Server";
      }
    }

    async function logout() {
      await fetch("/api/auth/logout", { method: "POST", credentials: "same-origin" });
      window.location.href = "/";
    }

    document.getElementById("create").addEventListener("click", createServer);
    document.getElementById("logout").addEventListener("click", logout);
    fetchUser();
  </script>
</body>
</html>
"""


def render_landing_page(error: Optional[str] = None) -> str:
    error_block = ""
    if error:
        message = _ERROR_MESSAGES.get(error, f"Login error: {error}")
        error_block = f'<p role="alert">{html.escape(message)}</p>'
    return _LANDING_TEMPLATE.format(error_block=error_block)


def render_dashboard_page() -> str:
    return _DASHBOARD_HTML
