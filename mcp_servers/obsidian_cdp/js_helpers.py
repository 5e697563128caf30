"""JavaScript helpers installed into the Obsidian renderer once per connection."""

from __future__ import annotations

HELPERS_GLOBAL = "__mcpHelpers"

HELPERS_SCRIPT = """
(() => {
  if (!window.__mcpHelpers) {
    window.__mcpHelpers = {
      // Case-insensitive path search with early termination.
      searchFiles: (query, limit) => {
        const q = String(query || "").toLowerCase();
        const results = [];
        for (const f of app.vault.getFiles()) {
          if (f.path.toLowerCase().includes(q)) {
            results.push({ path: f.path, name: f.name, extension: f.extension });
            if (results.length >= limit) break;
          }
        }
        return results;
      },
      getFileInfo: (path) => {
        const file = app.vault.getAbstractFileByPath(path);
        if (!file) return null;
        return {
          path: file.path,
          name: file.name,
          basename: file.basename,
          extension: file.extension,
          stat: file.stat,
        };
      },
    };
  }
  return true;
})()
"""

__all__ = ["HELPERS_GLOBAL", "HELPERS_SCRIPT"]
