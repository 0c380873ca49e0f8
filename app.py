import json
import logging
from flask import Blueprint, Flask, current_app, jsonify, request

from config import Config
from errors import PipelineError, UpstreamTransportError
from generator import GeminiImageGenerator
from pipeline import SINGLE_IMAGE, WHEEL_SWAP, run_variant

logger = logging.getLogger(__name__)

bp = Blueprint("wheelz", __name__)

PAGES = {
    SINGLE_IMAGE.name: {
        "title": "Transform Image",
        "prompt": True,
    },
    WHEEL_SWAP.name: {
        "title": "Swap Wheelz",
        "prompt": False,
    },
}


def create_app(config=None, generator=None):
    """Build the app; pass `generator` to replace the Gemini client.

    The Gemini generator is built once here and shared by every request.
    """
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)
    if generator is None and app.config["GEMINI_API_KEY"]:
        generator = GeminiImageGenerator(
            api_key=app.config["GEMINI_API_KEY"],
            model=app.config["GEMINI_IMAGE_MODEL"],
            timeout=app.config["GEMINI_TIMEOUT"],
        )
    app.extensions["image_generator"] = generator
    app.register_blueprint(bp)

    @app.errorhandler(413)
    def too_large(_e):
        limit_mb = app.config["MAX_CONTENT_LENGTH"] // (1024 * 1024)
        return jsonify({"error": f"Upload too large (max {limit_mb}MB)"}), 413

    return app


def read_uploads(variant):
    uploads = {}
    for slot in variant.slots:
        file = request.files.get(slot.field)
        uploads[slot.field] = (file.read(), file.mimetype) if file else None
    return uploads


def handle(variant, prompt=None):
    uploads = read_uploads(variant)

    try:
        outcome = run_variant(
            variant, uploads, prompt,
            generator=current_app.extensions["image_generator"],
            api_key=current_app.config["GEMINI_API_KEY"],
        )
    except PipelineError as e:
        logger.info("%s failed with %d: %s", variant.name, e.status_code, e.message)
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.exception("Error processing image")
        err = UpstreamTransportError(e)
        return jsonify(err.to_dict()), err.status_code

    logger.info("%s returned %s image", variant.name, outcome.mime_type)
    return jsonify(outcome.to_dict())


def render_page(variant):
    page = PAGES[variant.name]
    slots = [{"field": s.field, "label": s.label} for s in variant.slots]
    return (
        HTML_PAGE
        .replace("__TITLE__", page["title"])
        .replace("/*__ENDPOINT__*/", json.dumps(variant.endpoint))
        .replace("/*__SLOTS__*/", json.dumps(slots))
        .replace("/*__SHOW_PROMPT__*/", json.dumps(page["prompt"]))
    )


@bp.route("/")
def index():
    return render_page(SINGLE_IMAGE)


@bp.route("/swap")
def swap_page():
    return render_page(WHEEL_SWAP)


@bp.route("/health")
def health():
    return {"status": "ok"}


@bp.route(SINGLE_IMAGE.endpoint, methods=["POST"])
def transform():
    return handle(SINGLE_IMAGE, prompt=request.form.get("prompt", ""))


@bp.route(WHEEL_SWAP.endpoint, methods=["POST"])
def swap():
    return handle(WHEEL_SWAP)


HTML_PAGE = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Wheelz · __TITLE__</title>
<style>
  *, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }

  body {
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
    background: #0f0f0f;
    color: #e0e0e0;
    min-height: 100vh;
  }

  .container { max-width: 880px; margin: 0 auto; padding: 32px 24px; }

  header { text-align: center; margin-bottom: 28px; }
  header h1 { font-size: 1.6rem; color: #fff; font-weight: 700; }
  header p { font-size: 0.85rem; color: #888; margin-top: 4px; }
  header nav { margin-top: 10px; font-size: 0.8rem; }
  header nav a { color: #7aa2ff; margin: 0 6px; text-decoration: none; }

  .slots { display: flex; gap: 16px; }

  .dropzone {
    flex: 1;
    min-height: 220px;
    border: 2px dashed #333;
    border-radius: 12px;
    display: flex;
    align-items: center;
    justify-content: center;
    flex-direction: column;
    cursor: pointer;
    position: relative;
    overflow: hidden;
    transition: border-color 0.15s, background 0.15s;
  }
  .dropzone.dragging { border-color: #7aa2ff; background: #141a28; }
  .dropzone.has-image { border-style: solid; cursor: default; }
  .dropzone input { display: none; }
  .dropzone img { max-width: 100%; max-height: 320px; display: block; }
  .dropzone .label { font-size: 0.8rem; color: #888; margin-top: 6px; }
  .dropzone .hint { font-size: 0.7rem; color: #555; margin-top: 4px; }
  .dropzone .overlay {
    position: absolute; left: 0; right: 0; bottom: 0;
    padding: 6px 10px; background: rgba(0,0,0,0.6);
    font-size: 0.75rem; display: flex; justify-content: space-between;
  }

  textarea {
    width: 100%;
    margin-top: 16px;
    background: #161616;
    border: 1px solid #2a2a2a;
    border-radius: 8px;
    color: #e0e0e0;
    padding: 10px 12px;
    font: inherit;
    font-size: 0.85rem;
    resize: vertical;
  }

  .actions { display: flex; gap: 10px; justify-content: center; margin-top: 20px; }
  button {
    background: #2d5bff; color: #fff; border: none; border-radius: 8px;
    padding: 10px 20px; font-size: 0.85rem; font-weight: 600; cursor: pointer;
  }
  button:disabled { opacity: 0.4; cursor: not-allowed; }
  button.secondary { background: #222; color: #ccc; }

  .error {
    margin-top: 16px; padding: 10px 14px; border-radius: 8px;
    background: #2a1215; border: 1px solid #5c1f26; color: #ff8a8a;
    font-size: 0.85rem; white-space: pre-wrap; display: none;
  }
  .error.visible { display: block; }

  .result { margin-top: 24px; display: none; }
  .result.visible { display: block; }
  .result-header { display: flex; justify-content: space-between; align-items: center; margin-bottom: 10px; }
  .result img { max-width: 100%; border-radius: 12px; display: block; }

  .spinner {
    display: inline-block; width: 12px; height: 12px; margin-right: 6px;
    border: 2px solid rgba(255,255,255,0.3); border-top-color: #fff;
    border-radius: 50%; animation: spin 0.8s linear infinite; vertical-align: -2px;
  }
  @keyframes spin { to { transform: rotate(360deg); } }

  footer { text-align: center; font-size: 0.75rem; color: #555; margin-top: 40px; }
</style>
</head>
<body>
<div class="container">
  <header>
    <h1>Wheelz</h1>
    <p>AI-Powered Image Transformation</p>
    <nav><a href="/">Transform</a>·<a href="/swap">Swap wheels</a></nav>
  </header>

  <div class="slots" id="slots"></div>
  <textarea id="prompt" rows="3" placeholder="Optional instruction (leave blank for the default wheel replacement)"></textarea>

  <div class="actions">
    <button id="submitBtn" disabled>__TITLE__</button>
    <button id="resetBtn" class="secondary" style="display:none">Reset</button>
  </div>

  <div class="error" id="error"></div>

  <section class="result" id="result">
    <div class="result-header">
      <h2 style="font-size:1rem;color:#fff">Transformed Result</h2>
      <button id="downloadBtn" class="secondary">Download</button>
    </div>
    <img id="resultImg" alt="Transformed">
  </section>

  <footer>Powered by Google AI Studio</footer>
</div>

<script>
  const ENDPOINT = /*__ENDPOINT__*/;
  const SLOTS = /*__SLOTS__*/;
  const SHOW_PROMPT = /*__SHOW_PROMPT__*/;

  // idle | ready | submitting | succeeded | failed
  let state = 'idle';
  let slots = {};
  let error = null;
  let resultUri = null;
  let submission = 0;

  const slotsEl = document.getElementById('slots');
  const promptEl = document.getElementById('prompt');
  const submitBtn = document.getElementById('submitBtn');
  const submitLabel = submitBtn.textContent;
  const resetBtn = document.getElementById('resetBtn');
  const errorEl = document.getElementById('error');
  const resultEl = document.getElementById('result');
  const resultImg = document.getElementById('resultImg');
  const downloadBtn = document.getElementById('downloadBtn');

  if (!SHOW_PROMPT) promptEl.style.display = 'none';

  function emptySlot() {
    return { file: null, preview: null, fileName: null, dragging: false };
  }

  function allFilled() {
    return SLOTS.every(s => slots[s.field].file);
  }

  SLOTS.forEach(s => {
    slots[s.field] = emptySlot();
    const zone = document.createElement('div');
    zone.className = 'dropzone';
    zone.id = 'zone-' + s.field;
    const input = document.createElement('input');
    input.type = 'file';
    input.accept = 'image/*';
    zone.appendChild(input);
    const body = document.createElement('div');
    zone.appendChild(body);
    slotsEl.appendChild(zone);

    zone.addEventListener('click', () => { if (!slots[s.field].file) input.click(); });
    input.addEventListener('change', e => {
      const file = e.target.files && e.target.files[0];
      if (file) selectFile(s.field, file);
    });
    zone.addEventListener('dragover', e => {
      e.preventDefault();
      slots[s.field].dragging = true;
      render();
    });
    zone.addEventListener('dragleave', e => {
      e.preventDefault();
      slots[s.field].dragging = false;
      render();
    });
    zone.addEventListener('drop', e => {
      e.preventDefault();
      slots[s.field].dragging = false;
      const file = e.dataTransfer.files[0];
      if (file) selectFile(s.field, file);
      else render();
    });
  });

  // Browse and drop both land here.
  function selectFile(field, file) {
    if (!file.type.startsWith('image/')) {
      error = 'Please upload an image file';
      render();
      return;
    }
    error = null;
    resultUri = null;
    const slot = slots[field];
    slot.file = file;
    slot.fileName = file.name;
    const reader = new FileReader();
    reader.onload = e => {
      if (slots[field].file !== file) return;
      slot.preview = e.target.result;
      render();
    };
    reader.readAsDataURL(file);
    if (state !== 'submitting') state = allFilled() ? 'ready' : 'idle';
    render();
  }

  async function submit() {
    if (state === 'submitting' || !allFilled()) return;
    const token = ++submission;
    state = 'submitting';
    error = null;
    resultUri = null;
    render();

    const form = new FormData();
    SLOTS.forEach(s => form.append(s.field, slots[s.field].file));
    if (SHOW_PROMPT) form.append('prompt', promptEl.value);

    try {
      const res = await fetch(ENDPOINT, { method: 'POST', body: form });
      const data = await res.json();
      if (token !== submission) return;
      if (!res.ok) throw new Error(data.text || data.error || 'Failed to transform image');
      if (!(data.success && data.image)) throw new Error(data.error || 'No image returned');
      resultUri = 'data:' + data.image.mimeType + ';base64,' + data.image.data;
      state = 'succeeded';
    } catch (e) {
      if (token !== submission) return;
      error = e.message || 'An error occurred';
      state = 'failed';
    }
    render();
  }

  function reset() {
    submission++;
    SLOTS.forEach(s => { slots[s.field] = emptySlot(); });
    document.querySelectorAll('.dropzone input').forEach(i => { i.value = ''; });
    error = null;
    resultUri = null;
    state = 'idle';
    render();
  }

  function download() {
    if (state !== 'succeeded' || !resultUri) return;
    const first = slots[SLOTS[0].field].fileName;
    const link = document.createElement('a');
    link.href = resultUri;
    link.download = 'transformed-' + (first || 'image') + '.png';
    document.body.appendChild(link);
    link.click();
    document.body.removeChild(link);
    console.log('Downloaded', link.download);
  }

  function render() {
    SLOTS.forEach(s => {
      const slot = slots[s.field];
      const zone = document.getElementById('zone-' + s.field);
      zone.className = 'dropzone' + (slot.dragging ? ' dragging' : '') + (slot.preview ? ' has-image' : '');
      const body = zone.lastChild;
      if (slot.preview) {
        body.innerHTML = '';
        const img = document.createElement('img');
        img.src = slot.preview;
        const overlay = document.createElement('div');
        overlay.className = 'overlay';
        overlay.innerHTML = '<span></span><span></span>';
        overlay.firstChild.textContent = s.label;
        overlay.lastChild.textContent = slot.fileName || '';
        body.appendChild(img);
        body.appendChild(overlay);
      } else {
        body.innerHTML = '<div class="label">Click to upload or drag and drop the '
          + s.label + ' image</div><div class="hint">PNG, JPG, WEBP up to 10MB</div>';
      }
    });

    submitBtn.disabled = state === 'submitting' || !allFilled();
    submitBtn.innerHTML = state === 'submitting'
      ? '<span class="spinner"></span>Transforming...'
      : submitLabel;
    resetBtn.style.display = SLOTS.some(s => slots[s.field].file) || state !== 'idle' ? 'inline-block' : 'none';

    errorEl.textContent = error || '';
    errorEl.className = 'error' + (error ? ' visible' : '');

    resultEl.className = 'result' + (resultUri ? ' visible' : '');
    if (resultUri) resultImg.src = resultUri;
    else resultImg.removeAttribute('src');
  }

  submitBtn.addEventListener('click', submit);
  resetBtn.addEventListener('click', reset);
  downloadBtn.addEventListener('click', download);
  render();
</script>
</body>
</html>
"""

app = create_app()

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    app.run(debug=True, port=5001, threaded=True)
