#!/usr/bin/env python3
"""
Command-line interface for the wireframe-to-React pipeline.
"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from wireframe_react.config import DEFAULT_MODELS, MODEL_LABELS, GenerationSettings, PreviewSettings
from wireframe_react.errors import GenerationError, LoadError
from wireframe_react.io.artifacts import ArtifactManager
from wireframe_react.io.wireframe_loader import WireframeLoader, is_remote_image
from wireframe_react.pipeline.generation import GenerationClient
from wireframe_react.pipeline.sanitizer import ResponseSanitizer
from wireframe_react.rendering.preview_compiler import PreviewCompiler
from wireframe_react.rendering.preview_host import capture_preview
from wireframe_react.utils.llm_logger import LogLevel, get_logger

# Load environment variables
load_dotenv()


def _print_rendered(rendered):
    print(f"✅ Screenshots saved:")
    print(f"   📱 Mobile: {rendered.mobile_screenshot}")
    print(f"   💻 Tablet: {rendered.tablet_screenshot}")
    print(f"   🖥️  Desktop: {rendered.desktop_screenshot}")
    if rendered.render_errors:
        print(f"⚠️  The component failed inside the preview:")
        for error in rendered.render_errors:
            print(f"   [{error.phase}] {error.summary()}")


def cmd_generate(args):
    """Generate a React component from a wireframe image."""
    print("🚀 Generating React component...")

    loader = WireframeLoader()
    if not is_remote_image(args.image):
        image_path = Path(args.image)
        is_valid, error_msg = loader.validate_wireframe(image_path)
        if not is_valid:
            print(f"❌ Wireframe validation failed: {error_msg}")
            return 1
        print("✅ Wireframe validated")

    settings = GenerationSettings.from_env()
    if args.max_retries is not None:
        settings.max_retries = args.max_retries
    model = args.model or settings.default_model

    request = loader.build_request(args.image, args.description, model, request_id=args.request_id)

    print(f"📁 Request ID: {request.request_id}")
    print(f"🖼️  Wireframe: {args.image}")
    print(f"🤖 Using {MODEL_LABELS.get(model, model)} ({model})")

    on_chunk = None
    if args.stream:
        def on_chunk(delta, accumulated):
            sys.stdout.write(delta)
            sys.stdout.flush()

    client = GenerationClient(settings)
    try:
        generated, source_path = client.generate_and_save(
            request,
            output_dir=Path(args.output),
            stream=args.stream,
            on_chunk=on_chunk,
        )
    except GenerationError as e:
        print(f"\n❌ {e.user_message}")
        return 1

    if args.stream:
        print()

    artifact_manager = ArtifactManager(args.output)
    document = PreviewCompiler.compile(generated.source, generated.css_content)
    document_path = artifact_manager.save_document(request.request_id, document)

    print(f"✅ Component generated with {generated.model_name} after {generated.attempts} attempt(s)")
    print(f"📄 Source: {source_path}")
    print(f"🌐 Preview: {document_path}")
    print(f"📊 Tokens: {generated.prompt_tokens} prompt, {generated.completion_tokens} completion")

    if args.export:
        project_dir = artifact_manager.export_project(generated)
        print(f"📦 Project: {project_dir}")

    # Optionally render screenshots
    if not args.no_render:
        print("\n📸 Rendering preview...")
        try:
            rendered = capture_preview(
                document,
                artifact_manager.screenshots_dir(request.request_id),
                request_id=request.request_id,
            )
        except LoadError as e:
            print(f"❌ {e.user_message}")
            return 1
        _print_rendered(rendered)

    return 0


def cmd_compile(args):
    """Compile component source (or raw model output) into a preview document."""
    source_path = Path(args.source)
    if not source_path.exists():
        print(f"❌ Error: Source file not found: {source_path}")
        return 1

    raw = source_path.read_text(encoding="utf-8")
    source = ResponseSanitizer.sanitize(raw)
    if not source:
        print(f"❌ Error: No component code found in {source_path}")
        return 1

    strategy = PreviewCompiler.mount_strategy(source)
    document = PreviewCompiler.compile(source, ResponseSanitizer.extract_css(raw))

    output_path = Path(args.output) if args.output else source_path.with_suffix(".html")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(document, encoding="utf-8")

    print(f"✅ Preview document written: {output_path}")
    print(f"🧩 Mount strategy: {strategy.kind} {getattr(strategy, 'name', '')}".rstrip())
    return 0


def cmd_preview(args):
    """Render a component or compiled document at all viewports."""
    print("📸 Rendering preview...")

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"❌ Error: File not found: {input_path}")
        return 1

    text = input_path.read_text(encoding="utf-8")
    if input_path.suffix.lower() in (".html", ".htm"):
        document = text
    else:
        document = PreviewCompiler.compile(ResponseSanitizer.sanitize(text), ResponseSanitizer.extract_css(text))

    output_dir = Path(args.output)
    request_id = args.request_id or input_path.stem

    print(f"📄 Input: {input_path}")
    print(f"💾 Output: {output_dir}")

    settings = PreviewSettings.from_env()
    if args.headed:
        settings.headless = False
    if args.browser:
        settings.browser_type = args.browser

    try:
        rendered = capture_preview(document, output_dir, request_id=request_id, settings=settings)
    except LoadError as e:
        print(f"❌ {e.user_message}")
        return 1

    _print_rendered(rendered)
    return 0


def cmd_models(args):
    """List the models offered by default."""
    settings = GenerationSettings.from_env()
    for model in DEFAULT_MODELS:
        marker = "*" if model == settings.default_model else " "
        print(f"{marker} {MODEL_LABELS.get(model, model):<16} {model}")
    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Generate React + Tailwind components from wireframe images",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--log-level",
        choices=[level.name for level in LogLevel],
        help="LLM debug log level (default: LLM_DEBUG_LEVEL)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Generate command
    gen_parser = subparsers.add_parser("generate", help="Generate a component from a wireframe")
    gen_parser.add_argument("--image", "-i", required=True, help="Wireframe image path, URL or data URI")
    gen_parser.add_argument("--description", "-d", required=True, help="What the page should contain")
    gen_parser.add_argument("--model", "-m", help="Model identifier (default: GENERATION_MODEL)")
    gen_parser.add_argument("--output", "-o", default="outputs", help="Output directory")
    gen_parser.add_argument("--request-id", "-r", help="Request identifier (default: random)")
    gen_parser.add_argument("--max-retries", type=int, help="Attempts allowed beyond one per model")
    gen_parser.add_argument("--stream", action="store_true", help="Stream the response to stdout")
    gen_parser.add_argument("--export", action="store_true", help="Also write a runnable Vite project")
    gen_parser.add_argument("--no-render", action="store_true", help="Skip screenshot rendering")

    # Compile command
    compile_parser = subparsers.add_parser("compile", help="Compile component source into a preview document")
    compile_parser.add_argument("--source", "-s", required=True, help="Component source or raw model output")
    compile_parser.add_argument("--output", "-o", help="Output HTML path (default: next to source)")

    # Preview command
    preview_parser = subparsers.add_parser("preview", help="Render a component or preview document")
    preview_parser.add_argument("--input", "-i", required=True, help="Component source or compiled .html")
    preview_parser.add_argument("--output", "-o", required=True, help="Output directory for screenshots")
    preview_parser.add_argument("--request-id", "-r", help="Identifier (default: from filename)")
    preview_parser.add_argument("--browser", choices=["chromium", "firefox", "webkit"])
    preview_parser.add_argument("--headed", action="store_true", help="Run browser in headed mode")

    subparsers.add_parser("models", help="List available models")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    if args.log_level:
        get_logger().configure(level=LogLevel[args.log_level])

    try:
        if args.command == "generate":
            return cmd_generate(args)
        elif args.command == "compile":
            return cmd_compile(args)
        elif args.command == "preview":
            return cmd_preview(args)
        elif args.command == "models":
            return cmd_models(args)
    except KeyboardInterrupt:
        print("\n\n⚠️  Interrupted by user")
        return 130
    except Exception as e:
        print(f"\n❌ Error: {str(e)}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
