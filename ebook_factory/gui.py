"""Single-page GUI for the E-book Factory server.

The page polls ``/api/state`` and renders either the hero (topic input) or
the dashboard (chapter sidebar plus overview or reader pane). Chapter bodies
arrive pre-rendered from ``/api/chapter``.
"""
from __future__ import annotations

GUI_TITLE = "E-book Factory"
POLL_INTERVAL_MS = 1500


def get_gui_html() -> str:
    """Return the HTML for the e-book factory GUI."""
    html = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>__TITLE__</title>
    <style>
      :root {
        color-scheme: light;
        --bg: #f1f5f9;
        --surface: #ffffff;
        --border: #e2e8f0;
        --accent: #0d9488;
        --accent-soft: #ccfbf1;
        --text: #0f172a;
        --muted: #64748b;
        --danger: #dc2626;
        --warning: #d97706;
        --success: #15803d;
      }

      * {
        box-sizing: border-box;
      }

      body {
        margin: 0;
        font-family: "Inter", "Segoe UI", system-ui, -apple-system, sans-serif;
        background: var(--bg);
        color: var(--text);
      }

      .hidden {
        display: none !important;
      }

      .hero {
        min-height: 90vh;
        display: flex;
        flex-direction: column;
        align-items: center;
        justify-content: center;
        padding: 32px 16px;
        text-align: center;
      }

      .hero h1 {
        font-family: Georgia, "Times New Roman", serif;
        font-size: 52px;
        margin: 0 0 16px;
      }

      .hero p {
        max-width: 560px;
        color: var(--muted);
        font-size: 19px;
        line-height: 1.6;
      }

      .topic-form {
        display: flex;
        width: 100%;
        max-width: 680px;
        margin-top: 24px;
        background: var(--surface);
        border-radius: 12px;
        box-shadow: 0 12px 32px rgba(15, 23, 42, 0.12);
        padding: 8px;
      }

      .topic-form input {
        flex: 1;
        border: none;
        outline: none;
        font-size: 18px;
        padding: 14px;
        background: transparent;
      }

      button {
        border: none;
        border-radius: 8px;
        padding: 12px 22px;
        font-size: 15px;
        font-weight: 600;
        cursor: pointer;
        background: var(--accent);
        color: #ffffff;
      }

      button:disabled {
        opacity: 0.5;
        cursor: not-allowed;
      }

      button.ghost {
        background: transparent;
        color: var(--muted);
      }

      .banner {
        margin-top: 16px;
        color: var(--danger);
        font-size: 14px;
      }

      .features {
        display: flex;
        gap: 28px;
        margin-top: 32px;
        color: var(--muted);
        font-size: 14px;
      }

      .dashboard {
        display: flex;
        height: 100vh;
        overflow: hidden;
      }

      .sidebar {
        width: 320px;
        background: var(--surface);
        border-right: 1px solid var(--border);
        display: flex;
        flex-direction: column;
      }

      .sidebar-header {
        padding: 22px;
        border-bottom: 1px solid var(--border);
      }

      .sidebar-header .label {
        color: var(--accent);
        font-size: 11px;
        font-weight: 700;
        letter-spacing: 0.08em;
        text-transform: uppercase;
      }

      .sidebar-header h2 {
        font-family: Georgia, serif;
        margin: 8px 0 0;
        font-size: 18px;
      }

      .sidebar-body {
        flex: 1;
        overflow-y: auto;
        padding: 16px;
      }

      .section-title {
        display: flex;
        justify-content: space-between;
        align-items: center;
        color: var(--muted);
        font-size: 11px;
        font-weight: 700;
        letter-spacing: 0.08em;
        text-transform: uppercase;
        margin: 18px 8px 10px;
      }

      .counter {
        background: var(--bg);
        border-radius: 999px;
        padding: 2px 8px;
      }

      .nav-item {
        display: flex;
        width: 100%;
        gap: 12px;
        align-items: flex-start;
        text-align: left;
        background: transparent;
        color: var(--text);
        font-weight: 500;
        padding: 10px;
      }

      .nav-item.active {
        background: var(--accent-soft);
      }

      .badge {
        flex-shrink: 0;
        width: 24px;
        height: 24px;
        border-radius: 999px;
        display: inline-flex;
        align-items: center;
        justify-content: center;
        font-size: 12px;
        background: var(--bg);
        color: var(--muted);
      }

      .badge.completed {
        background: #dcfce7;
        color: var(--success);
      }

      .badge.generating {
        background: #fef3c7;
        color: var(--warning);
      }

      .badge.error {
        background: #fee2e2;
        color: var(--danger);
      }

      .sidebar-footer {
        padding: 16px;
        border-top: 1px solid var(--border);
      }

      .sidebar-footer button {
        width: 100%;
        background: var(--text);
      }

      .main {
        flex: 1;
        overflow-y: auto;
        padding: 32px;
      }

      .overview {
        max-width: 960px;
        margin: 0 auto;
        background: var(--surface);
        border-radius: 16px;
        padding: 40px;
        display: flex;
        gap: 40px;
      }

      .cover {
        width: 280px;
        aspect-ratio: 2 / 3;
        flex-shrink: 0;
        border-radius: 8px;
        overflow: hidden;
        background: var(--border);
        display: flex;
        align-items: center;
        justify-content: center;
        color: var(--muted);
        text-align: center;
        padding: 0;
      }

      .cover img {
        width: 100%;
        height: 100%;
        object-fit: cover;
      }

      .overview h1 {
        font-family: Georgia, serif;
        font-size: 40px;
        margin: 0 0 16px;
      }

      .audience {
        background: var(--bg);
        border-radius: 12px;
        padding: 18px;
        margin: 20px 0;
      }

      .progress-note {
        color: var(--muted);
        font-size: 14px;
        margin-left: 16px;
      }

      .reader {
        max-width: 760px;
        margin: 0 auto;
        background: var(--surface);
        padding: 56px;
        min-height: 80vh;
      }

      .reader-header {
        text-align: center;
        border-bottom: 1px solid var(--border);
        padding-bottom: 28px;
        margin-bottom: 28px;
      }

      .reader-header .label {
        color: var(--muted);
        font-size: 12px;
        letter-spacing: 0.2em;
        text-transform: uppercase;
      }

      .reader-header h1 {
        font-family: Georgia, serif;
        margin: 8px 0 0;
      }

      .reader-body p {
        font-family: Georgia, serif;
        font-size: 18px;
        line-height: 1.7;
      }

      .reader-body li.bullet {
        list-style: disc;
        margin-left: 24px;
      }

      .reader-body li.numbered {
        list-style: decimal;
        margin-left: 24px;
      }

      .skeleton div {
        height: 14px;
        background: var(--border);
        border-radius: 4px;
        margin-bottom: 14px;
      }

      .reader-nav {
        max-width: 760px;
        margin: 24px auto 48px;
        display: flex;
        justify-content: space-between;
      }
    </style>
  </head>
  <body>
    <section class="hero" id="heroView">
      <h1>Create your best-seller</h1>
      <p>
        Turn an idea into a complete e-book in minutes, with a cover, ten
        chapters and a sales pitch.
      </p>
      <form class="topic-form" id="topicForm">
        <input
          id="topicInput"
          type="text"
          autocomplete="off"
          placeholder="What do you want to write about? (e.g. Digital marketing for beginners)"
        />
        <button type="submit" id="generateButton">Generate</button>
      </form>
      <div class="banner hidden" id="apiKeyBanner">
        API key missing. Set GEMINI_API_KEY before starting the server.
      </div>
      <div class="banner hidden" id="errorMessage"></div>
      <div class="features">
        <span>Cover included</span>
        <span>10 chapters</span>
        <span>Ready to sell</span>
      </div>
    </section>

    <section class="dashboard hidden" id="dashboardView">
      <aside class="sidebar">
        <div class="sidebar-header">
          <div class="label">E-book Factory</div>
          <h2 id="sidebarTitle"></h2>
        </div>
        <div class="sidebar-body">
          <div class="section-title">Cover &amp; details</div>
          <button class="nav-item" id="overviewLink" type="button">Overview</button>
          <div class="section-title">
            <span>Chapters</span>
            <span class="counter" id="chapterCounter">0/0</span>
          </div>
          <div id="chapterList"></div>
        </div>
        <div class="sidebar-footer">
          <button id="exportButton" type="button">Export e-book</button>
        </div>
      </aside>

      <main class="main">
        <div id="overviewPanel">
          <div class="overview">
            <div class="cover" id="coverFrame">
              <img id="coverImage" class="hidden" alt="Book cover" />
              <span id="coverPlaceholder">Drawing the cover...</span>
            </div>
            <div>
              <h1 id="bookTitle"></h1>
              <p id="bookDescription"></p>
              <div class="audience">
                <strong>Target audience</strong>
                <p id="bookAudience"></p>
              </div>
              <button id="startReading" type="button">Start reading</button>
              <span class="progress-note" id="progressNote"></span>
            </div>
          </div>
        </div>

        <div id="readerPanel" class="hidden">
          <article class="reader">
            <div class="reader-header">
              <div class="label">Chapter</div>
              <h1 id="readerTitle"></h1>
            </div>
            <div class="reader-body" id="readerBody"></div>
          </article>
          <div class="reader-nav">
            <button class="ghost" id="prevChapter" type="button">&larr; Previous</button>
            <button class="ghost" id="nextChapter" type="button">Next &rarr;</button>
          </div>
        </div>
      </main>
    </section>

    <script>
      const heroView = document.getElementById('heroView');
      const dashboardView = document.getElementById('dashboardView');
      const topicForm = document.getElementById('topicForm');
      const topicInput = document.getElementById('topicInput');
      const generateButton = document.getElementById('generateButton');
      const apiKeyBanner = document.getElementById('apiKeyBanner');
      const errorMessage = document.getElementById('errorMessage');
      const sidebarTitle = document.getElementById('sidebarTitle');
      const overviewLink = document.getElementById('overviewLink');
      const chapterCounter = document.getElementById('chapterCounter');
      const chapterList = document.getElementById('chapterList');
      const exportButton = document.getElementById('exportButton');
      const overviewPanel = document.getElementById('overviewPanel');
      const coverImage = document.getElementById('coverImage');
      const coverPlaceholder = document.getElementById('coverPlaceholder');
      const bookTitle = document.getElementById('bookTitle');
      const bookDescription = document.getElementById('bookDescription');
      const bookAudience = document.getElementById('bookAudience');
      const startReading = document.getElementById('startReading');
      const progressNote = document.getElementById('progressNote');
      const readerPanel = document.getElementById('readerPanel');
      const readerTitle = document.getElementById('readerTitle');
      const readerBody = document.getElementById('readerBody');
      const prevChapter = document.getElementById('prevChapter');
      const nextChapter = document.getElementById('nextChapter');

      let lastState = null;
      let renderedChapterKey = null;
      let coverLoaded = false;

      async function postJson(path, payload) {
        const response = await fetch(path, {
          method: 'POST',
          headers: { 'Content-Type': 'application/json' },
          body: JSON.stringify(payload || {}),
        });
        const data = await response.json();
        if (!response.ok) {
          throw new Error(data.error || 'Request failed.');
        }
        return data;
      }

      async function getJson(path) {
        const response = await fetch(path);
        const data = await response.json();
        if (!response.ok) {
          throw new Error(data.error || 'Request failed.');
        }
        return data;
      }

      function showError(message) {
        errorMessage.textContent = message || '';
        errorMessage.classList.toggle('hidden', !message);
      }

      function renderHero(state) {
        const planning = state.session_state === 'planning';
        apiKeyBanner.classList.toggle('hidden', state.api_key_configured);
        generateButton.disabled =
          planning || !state.api_key_configured || !topicInput.value.trim();
        generateButton.textContent = planning ? 'Planning...' : 'Generate';
        showError(state.error);
      }

      function renderChapterList(state) {
        chapterList.innerHTML = '';
        state.book.chapters.forEach((chapter) => {
          const item = document.createElement('button');
          item.type = 'button';
          item.className = 'nav-item';
          if (state.selected_chapter_id === chapter.id) {
            item.classList.add('active');
          }
          const badge = document.createElement('span');
          badge.className = `badge ${chapter.status}`;
          badge.textContent = chapter.status === 'generating' ? '...' : chapter.id;
          const title = document.createElement('span');
          title.textContent = chapter.title;
          item.append(badge, title);
          item.addEventListener('click', () => selectChapter(chapter.id));
          chapterList.appendChild(item);
        });
      }

      function renderOverview(state) {
        const book = state.book;
        bookTitle.textContent = book.title;
        bookDescription.textContent = book.description;
        bookAudience.textContent = book.target_audience;
        if (book.has_cover && !coverLoaded) {
          coverImage.src = `/api/cover?rev=${state.revision}`;
          coverLoaded = true;
        }
        coverImage.classList.toggle('hidden', !book.has_cover);
        coverPlaceholder.classList.toggle('hidden', book.has_cover);
        coverPlaceholder.textContent = book.is_generating_cover
          ? 'Drawing the cover...'
          : 'Cover unavailable';
        progressNote.textContent =
          state.session_state === 'finished'
            ? ''
            : `Writing chapters... (${state.generated_chapters_count}/${state.total_chapters})`;
      }

      async function renderReader(state) {
        const chapterId = state.selected_chapter_id;
        const summary = state.book.chapters.find((chapter) => chapter.id === chapterId);
        const key = summary ? `${chapterId}:${summary.status}` : `${chapterId}:missing`;
        if (key === renderedChapterKey) {
          return;
        }
        renderedChapterKey = key;
        if (!summary) {
          readerTitle.textContent = 'Chapter not found';
          readerBody.innerHTML = '';
          return;
        }
        readerTitle.textContent = summary.title;
        const loading = summary.status === 'pending' || summary.status === 'generating';
        if (loading) {
          readerBody.innerHTML =
            '<div class="skeleton"><div></div><div></div><div></div><div></div></div>';
        } else {
          const chapter = await getJson(`/api/chapter?id=${chapterId}`);
          readerBody.innerHTML = chapter.html;
        }
        const ids = state.book.chapters.map((chapter) => chapter.id);
        prevChapter.disabled = ids.indexOf(chapterId) <= 0;
        nextChapter.disabled = ids.indexOf(chapterId) >= ids.length - 1;
      }

      async function render(state) {
        lastState = state;
        const dashboard =
          state.book && (state.session_state === 'creating' || state.session_state === 'finished');
        heroView.classList.toggle('hidden', dashboard);
        dashboardView.classList.toggle('hidden', !dashboard);
        if (!dashboard) {
          coverLoaded = false;
          renderedChapterKey = null;
          renderHero(state);
          return;
        }
        sidebarTitle.textContent = state.book.title;
        chapterCounter.textContent = `${state.generated_chapters_count}/${state.total_chapters}`;
        overviewLink.classList.toggle('active', state.selected_chapter_id === null);
        renderChapterList(state);
        const reading = state.selected_chapter_id !== null;
        overviewPanel.classList.toggle('hidden', reading);
        readerPanel.classList.toggle('hidden', !reading);
        if (reading) {
          await renderReader(state);
        } else {
          renderedChapterKey = null;
          renderOverview(state);
        }
      }

      async function refresh() {
        try {
          await render(await getJson('/api/state'));
        } catch (error) {
          showError(error.message);
        }
      }

      async function selectChapter(chapterId) {
        await postJson('/api/select', { chapter_id: chapterId });
        await refresh();
      }

      async function moveSelection(offset) {
        await postJson('/api/select', { offset });
        await refresh();
      }

      topicForm.addEventListener('submit', async (event) => {
        event.preventDefault();
        try {
          await postJson('/api/generate', { topic: topicInput.value });
          showError('');
        } catch (error) {
          showError(error.message);
        }
        await refresh();
      });

      topicInput.addEventListener('input', () => {
        if (lastState) {
          renderHero(lastState);
        }
      });

      overviewLink.addEventListener('click', () => selectChapter(null));
      startReading.addEventListener('click', () => {
        const first = lastState && lastState.book && lastState.book.chapters[0];
        if (first) {
          selectChapter(first.id);
        }
      });
      prevChapter.addEventListener('click', () => moveSelection(-1));
      nextChapter.addEventListener('click', () => moveSelection(1));
      exportButton.addEventListener('click', async () => {
        try {
          const result = await postJson('/api/export');
          alert(result.message);
        } catch (error) {
          alert(error.message);
        }
      });

      refresh();
      setInterval(refresh, __POLL_INTERVAL__);
    </script>
  </body>
</html>
"""
    return html.replace("__TITLE__", GUI_TITLE).replace(
        "__POLL_INTERVAL__", str(POLL_INTERVAL_MS)
    )


__all__ = ["get_gui_html", "GUI_TITLE"]
