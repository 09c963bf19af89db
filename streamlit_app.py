"""
Streamlit web interface for the wireframe-to-React pipeline.

Upload a wireframe, describe the page, pick a model, watch the code stream in
and inspect the live preview at mobile, tablet and desktop widths.
"""

from datetime import datetime
from pathlib import Path

import streamlit as st
import streamlit.components.v1 as components
from dotenv import load_dotenv

from wireframe_react.config import DEFAULT_MODELS, MODEL_LABELS, GenerationSettings
from wireframe_react.errors import GenerationError, LoadError
from wireframe_react.io.artifacts import ArtifactManager
from wireframe_react.io.wireframe_loader import WireframeLoader
from wireframe_react.models import ViewportConfig, ViewportMode
from wireframe_react.pipeline.generation import GenerationClient
from wireframe_react.rendering.preview_compiler import PreviewCompiler, apply_source_edit
from wireframe_react.rendering.preview_host import capture_preview, embed_document

# Load environment variables
load_dotenv()

# Page configuration
st.set_page_config(
    page_title="Wireframe to React",
    page_icon="🖼️",
    layout="wide",
    initial_sidebar_state="expanded"
)

# Custom CSS
st.markdown("""
<style>
    .main-header {
        font-size: 2.5rem;
        font-weight: 700;
        margin-bottom: 1rem;
    }
    .sub-header {
        font-size: 1.2rem;
        color: #666;
        margin-bottom: 2rem;
    }
</style>
""", unsafe_allow_html=True)

# Initialize session state
if "generated" not in st.session_state:
    st.session_state.generated = None
if "document" not in st.session_state:
    st.session_state.document = None
if "rendered_preview" not in st.session_state:
    st.session_state.rendered_preview = None
if "preview_nonce" not in st.session_state:
    st.session_state.preview_nonce = 0


def main():
    """Main application entry point."""

    # Header
    st.markdown('<div class="main-header">🖼️ Wireframe to React</div>', unsafe_allow_html=True)
    st.markdown(
        '<div class="sub-header">Turn a wireframe and a description into a React + Tailwind component</div>',
        unsafe_allow_html=True
    )

    settings = GenerationSettings.from_env()

    # Sidebar configuration
    with st.sidebar:
        st.header("⚙️ Configuration")

        st.subheader("Model")
        model_options = list(dict.fromkeys([settings.default_model] + DEFAULT_MODELS))
        model_name = st.selectbox(
            "Model",
            model_options,
            index=0,
            format_func=lambda model: MODEL_LABELS.get(model, model),
            help="Other models are used as fallbacks when this one fails"
        )

        settings.temperature = st.slider(
            "Temperature",
            min_value=0.0,
            max_value=1.0,
            value=settings.temperature,
            step=0.1,
            help="Lower = more deterministic, Higher = more creative"
        )

        settings.max_tokens = st.number_input(
            "Max Tokens",
            min_value=1024,
            max_value=16384,
            value=settings.max_tokens,
            step=500
        )

        stream = st.toggle("Stream response", value=True)

        st.divider()

        # Output Settings
        output_dir = st.text_input(
            "Output Directory",
            value="outputs",
            help="Directory to save generated files"
        )

        if not settings.api_key:
            st.warning("OPENROUTER_API_KEY is not set")

    # Main content area
    tab1, tab2, tab3, tab4 = st.tabs([
        "📤 Upload & Generate",
        "🖥️ Preview",
        "💻 Code",
        "ℹ️ About"
    ])

    with tab1:
        upload_and_generate_tab(settings, model_name, stream, output_dir)

    with tab2:
        preview_tab(output_dir)

    with tab3:
        code_tab(output_dir)

    with tab4:
        about_tab()


def upload_and_generate_tab(settings, model_name, stream, output_dir):
    """Upload a wireframe and generate a component."""

    st.header("Upload Wireframe")

    wireframe_file = st.file_uploader(
        "Upload wireframe",
        type=["png", "jpg", "jpeg", "webp"],
        key="wireframe_upload",
    )
    if wireframe_file:
        st.image(wireframe_file, caption="Wireframe", width=480)

    description = st.text_area(
        "Description",
        placeholder="A landing page for a coffee shop with a hero image, a menu grid and a contact form",
        height=120,
    )

    request_id = st.text_input(
        "Request ID (optional)",
        value="",
        placeholder=f"request_{datetime.now().strftime('%Y%m%d_%H%M%S')}",
        help="Identifier for this generation run"
    )

    if not st.button("🚀 Generate Component", type="primary"):
        return

    if not wireframe_file:
        st.error("❌ Please upload a wireframe image")
        return
    if not description.strip():
        st.error("❌ Please describe what you want to build")
        return

    loader = WireframeLoader()
    request = loader.build_request(
        wireframe_file.getvalue(),
        description,
        model_name,
        request_id=request_id or f"request_{datetime.now().strftime('%Y%m%d_%H%M%S')}",
    )

    st.subheader("Streaming code")
    code_placeholder = st.empty()

    def on_chunk(delta, accumulated):
        code_placeholder.code(accumulated, language="jsx")

    client = GenerationClient(settings)
    try:
        with st.spinner("🔄 Generating component..."):
            generated, source_path = client.generate_and_save(
                request,
                output_dir=Path(output_dir),
                stream=stream,
                on_chunk=on_chunk if stream else None,
            )
    except GenerationError as e:
        st.error(f"❌ {e.user_message}")
        return

    document = PreviewCompiler.compile(generated.source, generated.css_content)
    ArtifactManager(output_dir).save_document(request.request_id, document)

    st.session_state.generated = generated
    st.session_state.document = document
    st.session_state.rendered_preview = None

    code_placeholder.code(generated.source, language="jsx")
    st.success(
        f"✅ Generated with {MODEL_LABELS.get(generated.model_name, generated.model_name)} "
        f"after {generated.attempts} attempt(s)"
    )
    st.info(f"📁 Saved to: {source_path}")


def preview_tab(output_dir):
    """Live preview of the compiled document."""

    st.header("Live Preview")

    document = st.session_state.document
    if not document:
        st.info("👆 Generate a component in the 'Upload & Generate' tab first.")
        return

    col1, col2, col3 = st.columns([2, 1, 1])
    with col1:
        mode = st.radio(
            "Viewport",
            [mode.value for mode in ViewportMode],
            index=2,
            horizontal=True,
        )
    with col2:
        if st.button("🔄 Refresh"):
            st.session_state.preview_nonce += 1
    with col3:
        capture = st.button("📸 Screenshots")

    viewport = ViewportConfig.for_mode(ViewportMode(mode))
    strategy = PreviewCompiler.mount_strategy(st.session_state.generated.source)
    if strategy.kind == "none":
        st.warning("No component found in the generated code")

    # Streamlit's component frame is same-origin with the app, so the
    # generated code only ever runs inside the nested sandboxed frame
    components.html(
        embed_document(document, viewport.height, nonce=st.session_state.preview_nonce),
        width=viewport.width,
        height=viewport.height,
        scrolling=True,
    )

    if capture:
        generated = st.session_state.generated
        artifact_manager = ArtifactManager(output_dir)
        try:
            with st.spinner("📸 Rendering screenshots..."):
                st.session_state.rendered_preview = capture_preview(
                    document,
                    artifact_manager.screenshots_dir(generated.request_id),
                    request_id=generated.request_id,
                )
        except LoadError as e:
            st.error(f"❌ {e.user_message}")

    rendered = st.session_state.rendered_preview
    if rendered:
        for error in rendered.render_errors:
            st.error(f"Component error ({error.phase}): {error.summary()}")

        screenshot_cols = st.columns(3)
        for column, view in zip(screenshot_cols, ViewportMode):
            with column:
                st.markdown(f"**{view.value.title()} ({ViewportConfig.for_mode(view).width}px)**")
                path = rendered.screenshot_for(view)
                if path:
                    st.image(str(path))


def code_tab(output_dir):
    """Generated source, metadata and downloads."""

    st.header("Generated Code")

    generated = st.session_state.generated
    if not generated:
        st.info("👆 Generate a component in the 'Upload & Generate' tab first.")
        return

    meta_col1, meta_col2, meta_col3 = st.columns(3)
    with meta_col1:
        st.metric("Request ID", generated.request_id)
        st.metric("Model", MODEL_LABELS.get(generated.model_name, generated.model_name))
    with meta_col2:
        st.metric("Attempts", generated.attempts)
        st.metric("Timestamp", generated.generation_timestamp.strftime("%Y-%m-%d %H:%M:%S"))
    with meta_col3:
        if generated.prompt_tokens:
            st.metric("Prompt Tokens", f"{generated.prompt_tokens:,}")
        if generated.completion_tokens:
            st.metric("Completion Tokens", f"{generated.completion_tokens:,}")

    with st.form("edit_source"):
        edited = st.text_area(
            "App.jsx",
            value=generated.source,
            height=420,
            key=f"editor_{generated.request_id}",
        )
        apply_edit = st.form_submit_button("▶️ Apply & re-preview")

    if apply_edit:
        try:
            generated, document = apply_source_edit(generated, edited)
        except ValueError as e:
            st.error(f"❌ {e}")
        else:
            artifact_manager = ArtifactManager(output_dir)
            artifact_manager.save_source(generated.request_id, generated.source)
            artifact_manager.save_document(generated.request_id, document)

            st.session_state.generated = generated
            st.session_state.document = document
            st.session_state.rendered_preview = None
            st.session_state.preview_nonce += 1
            # The preview tab is drawn earlier in the run
            st.rerun()

    if generated.css_content:
        with st.expander("Extracted CSS", expanded=False):
            st.code(generated.css_content, language="css")
    with st.expander("Raw model response", expanded=False):
        st.code(generated.raw_content, language="markdown")

    dl_col1, dl_col2, dl_col3 = st.columns(3)
    with dl_col1:
        st.download_button(
            label="⬇️ Download App.jsx",
            data=generated.source,
            file_name="App.jsx",
            mime="text/javascript",
            key="download_source"
        )
    with dl_col2:
        st.download_button(
            label="⬇️ Download preview.html",
            data=st.session_state.document or "",
            file_name=f"{generated.request_id}.html",
            mime="text/html",
            key="download_document"
        )
    with dl_col3:
        if st.button("📦 Export Vite project"):
            try:
                project_dir = ArtifactManager(output_dir).export_project(generated)
                st.success(f"✅ Project written to {project_dir}")
            except ValueError as e:
                st.error(f"❌ {e}")


def about_tab():
    """About information."""

    st.header("About")

    st.markdown("""
    ### Pipeline

    1. **Upload** a wireframe image and describe the page.
    2. **Generate**: the model returns a React component styled with Tailwind CSS.
       Rate limits, malformed or HTML responses and transport failures fall back to
       the next model; authentication errors stop immediately.
    3. **Sanitize**: code fences, imports and exports are stripped and the main
       component is renamed to `App`.
    4. **Preview**: the component is compiled in the browser with Babel and mounted
       inside a sandboxed frame. Errors thrown by the component are shown in a red
       panel inside the preview.

    ### Configuration

    Set `OPENROUTER_API_KEY` (and optionally `GENERATION_BASE_URL`,
    `GENERATION_FALLBACK_MODELS`, `LLM_DEBUG_LEVEL`) in your environment or `.env`.
    """)


if __name__ == "__main__":
    main()
