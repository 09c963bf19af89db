"""
Reading and writing pipeline artifacts: generated source, preview documents,
generation logs and exported Vite projects.
"""

import json
from pathlib import Path
from typing import Dict, Union

from wireframe_react.models import GeneratedComponent
from wireframe_react.pipeline.sanitizer import ResponseSanitizer


DEFAULT_APP_CSS = """/* Generated styles */
body {
  margin: 0;
  font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;
}
"""

TAILWIND_DIRECTIVES = """@tailwind base;
@tailwind components;
@tailwind utilities;
"""

INDEX_HTML = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>{title}</title>
  </head>
  <body>
    <div id="root"></div>
    <script type="module" src="/src/main.tsx"></script>
  </body>
</html>
"""

MAIN_TSX = """import React from 'react';
import ReactDOM from 'react-dom/client';
import App from './App';
import './index.css';

ReactDOM.createRoot(document.getElementById('root') as HTMLElement).render(
  <React.StrictMode>
    <App />
  </React.StrictMode>
);
"""

TAILWIND_CONFIG = """/** @type {import('tailwindcss').Config} */
module.exports = {
  content: ["./index.html", "./src/**/*.{js,jsx,ts,tsx}"],
  theme: {
    extend: {},
  },
  plugins: [],
}
"""

POSTCSS_CONFIG = """module.exports = {
  plugins: {
    tailwindcss: {},
    autoprefixer: {},
  },
}
"""

PACKAGE_JSON = {
    "name": "react-app",
    "private": True,
    "version": "0.0.0",
    "type": "module",
    "scripts": {
        "dev": "vite",
        "build": "vite build",
        "preview": "vite preview",
    },
    "dependencies": {
        "react": "^18.2.0",
        "react-dom": "^18.2.0",
    },
    "devDependencies": {
        "@types/react": "^18.2.15",
        "@types/react-dom": "^18.2.7",
        "@vitejs/plugin-react": "^4.0.3",
        "autoprefixer": "^10.4.14",
        "postcss": "^8.4.27",
        "tailwindcss": "^3.4.1",
        "typescript": "^5.0.2",
        "vite": "^4.4.5",
    },
}

README = """# React App Generated from Wireframe

Generated by {model} from a wireframe design.

## Getting Started

1. Install dependencies: `npm install`
2. Run the app: `npm run dev`

## Project Structure

- `src/App.tsx` - Main App component
- `src/main.tsx` - Entry point
- `src/App.css` - Styles extracted from the model response
- `src/index.css` - Tailwind directives
"""


def project_files(generated: GeneratedComponent, title: str = "React App") -> Dict[str, str]:
    """
    Files of a standalone Vite + Tailwind project wrapping the component.

    Args:
        generated: Generation result.
        title: Document title.

    Returns:
        Mapping of relative path to file content.
    """
    app_tsx = f"import React from 'react';\nimport './App.css';\n\n{generated.source.strip()}\n\nexport default App;\n"
    return {
        "index.html": INDEX_HTML.format(title=title),
        "package.json": json.dumps(PACKAGE_JSON, indent=2) + "\n",
        "tailwind.config.js": TAILWIND_CONFIG,
        "postcss.config.js": POSTCSS_CONFIG,
        "README.md": README.format(model=generated.model_name),
        "src/App.tsx": app_tsx,
        "src/main.tsx": MAIN_TSX,
        "src/App.css": (generated.css_content.strip() + "\n") if generated.css_content.strip() else DEFAULT_APP_CSS,
        "src/index.css": TAILWIND_DIRECTIVES,
    }


class ArtifactManager:
    """Manages reading and writing pipeline artifacts."""

    def __init__(self, output_dir: Union[str, Path] = "outputs"):
        """
        Initialize artifact manager.

        Args:
            output_dir: Root directory for pipeline outputs.
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def create_request_directory(self, request_id: str) -> Path:
        """
        Create output directory for a request.

        Args:
            request_id: Request identifier.

        Returns:
            Path to request directory.
        """
        request_dir = self.output_dir / request_id
        request_dir.mkdir(parents=True, exist_ok=True)

        # Create subdirectories
        (request_dir / "screenshots").mkdir(exist_ok=True)
        (request_dir / "logs").mkdir(exist_ok=True)

        return request_dir

    def save_source(self, request_id: str, source: str, filename: str = "App.jsx") -> Path:
        """
        Save sanitized component source to disk.

        Args:
            request_id: Request identifier.
            source: Component source to save.
            filename: Output filename.

        Returns:
            Path to saved source file.
        """
        source_path = self.create_request_directory(request_id) / filename
        source_path.write_text(source, encoding="utf-8")
        return source_path

    def save_document(self, request_id: str, document: str, filename: str = "preview.html") -> Path:
        """Save a compiled preview document."""
        document_path = self.create_request_directory(request_id) / filename
        document_path.write_text(document, encoding="utf-8")
        return document_path

    def save_generation_log(self, generated: GeneratedComponent) -> Path:
        """Save generation metadata next to the source."""
        log_path = self.create_request_directory(generated.request_id) / "generation_log.json"
        metadata = {
            "request_id": generated.request_id,
            "timestamp": generated.generation_timestamp.isoformat(),
            "model": generated.model_name,
            "attempts": generated.attempts,
            "prompt_tokens": generated.prompt_tokens,
            "completion_tokens": generated.completion_tokens,
            "metadata": generated.generation_metadata
        }
        log_path.write_text(json.dumps(metadata, indent=2, default=str), encoding="utf-8")
        return log_path

    def screenshots_dir(self, request_id: str) -> Path:
        return self.create_request_directory(request_id) / "screenshots"

    def load_source(self, request_id: str, filename: str = "App.jsx") -> str:
        """
        Load saved component source from disk.

        Args:
            request_id: Request identifier.
            filename: Source filename.

        Returns:
            Component source.
        """
        source_path = self.output_dir / request_id / filename
        if not source_path.exists():
            raise FileNotFoundError(f"Source file not found: {source_path}")
        return source_path.read_text(encoding="utf-8")

    def export_project(self, generated: GeneratedComponent, title: str = "React App") -> Path:
        """
        Write a runnable Vite project for a generation result.

        Returns:
            Path to the project directory.
        """
        if not ResponseSanitizer.has_app_component(generated.source):
            raise ValueError("Generated source does not define an App component")

        project_dir = self.create_request_directory(generated.request_id) / "project"
        for relative_path, content in project_files(generated, title=title).items():
            file_path = project_dir / relative_path
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content, encoding="utf-8")
        return project_dir
