"""
HTML pages for browsing the media root: folder listing, video player,
comic viewer and audio playlist.
"""

import html
import json
import urllib.parse

from asymedia.media.mime import MediaKind

PAGE_STYLE = '''
        :root {
            --primary: #2563eb;
            --background: #f8fafc;
            --surface: #ffffff;
            --text: #1e293b;
            --text-muted: #64748b;
            --border: #e2e8f0;
            --shadow: 0 4px 6px -1px rgba(0, 0, 0, 0.1);
        }
        * { margin: 0; padding: 0; box-sizing: border-box; }
        body {
            font-family: 'Inter', 'Segoe UI', system-ui, sans-serif;
            background: var(--background);
            color: var(--text);
            padding: 20px;
            line-height: 1.6;
        }
        a { color: var(--primary); text-decoration: none; }
        .breadcrumb { margin-bottom: 20px; font-weight: 500; }
        .breadcrumb .sep { color: var(--text-muted); margin: 0 6px; }
        .grid { display: grid; grid-template-columns: repeat(auto-fill, minmax(200px, 1fr)); gap: 16px; margin-bottom: 32px; }
        .card { background: var(--surface); border-radius: 8px; box-shadow: var(--shadow); overflow: hidden; color: var(--text); }
        .card .thumb { height: 160px; background: #000; display: flex; align-items: center; justify-content: center; }
        .card .thumb img { max-width: 100%; max-height: 100%; object-fit: contain; }
        .card .icon { font-size: 2rem; padding: 16px 16px 0 16px; }
        .card .label { padding: 12px 16px; white-space: nowrap; overflow: hidden; text-overflow: ellipsis; }
        .card .meta { font-size: 0.8rem; color: var(--text-muted); }
        h2 { margin-bottom: 12px; font-size: 1.1rem; color: var(--text-muted); }
        .viewer { max-width: 1200px; margin: 0 auto; text-align: center; }
        .viewer video, .viewer img { max-width: 100%; max-height: 85vh; background: #000; }
        .controls { margin: 12px 0; }
        .controls button { padding: 6px 16px; margin: 0 4px; }
        .playlist { list-style: none; text-align: left; max-width: 600px; margin: 12px auto; }
        .playlist li { padding: 6px 10px; cursor: pointer; border-bottom: 1px solid var(--border); }
        .playlist li.active { background: var(--primary); color: #fff; }
'''

KIND_ICONS = {
    MediaKind.VIDEO: '&#127916;',
    MediaKind.AUDIO: '&#127925;',
    MediaKind.IMAGE: '&#128444;',
    MediaKind.OTHER: '&#128196;',
}

KIND_ROUTES = {
    MediaKind.VIDEO: '/watch/',
    MediaKind.AUDIO: '/audio/',
    MediaKind.IMAGE: '/comic/',
    MediaKind.OTHER: '/video/',
}


def media_url(prefix:str, relative:str) -> str:
    """The whole relative path goes in as one encoded component, slashes included."""
    return prefix + urllib.parse.quote(relative, safe='')


def _page(title:str, body:str, script:str = '') -> str:
    return f'''<!DOCTYPE html>
<html>
<head>
    <title>{html.escape(title)}</title>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <style>{PAGE_STYLE}</style>
</head>
<body>
{body}
{script}
</body>
</html>'''


def _json_for_script(value) -> str:
    # keeps '</script>' inside file names from closing the tag
    return json.dumps(value).replace('<', '\\u003c').replace('>', '\\u003e').replace('&', '\\u0026')


def build_breadcrumbs(relative:str, root_name:str = '') -> str:
    crumbs = ['<a href="/">Home</a>']
    parts = [p for p in relative.split('/') if p] if relative else []
    if not parts and root_name:
        crumbs.append(f'<span>{html.escape(root_name)}</span>')
    acc = ''
    for i, part in enumerate(parts):
        acc = part if not acc else acc + '/' + part
        if i == len(parts) - 1:
            crumbs.append(f'<span>{html.escape(part)}</span>')
        else:
            crumbs.append(f'<a href="{html.escape(media_url("/folder/", acc))}">{html.escape(part)}</a>')
    return '<div class="breadcrumb">' + ' <span class="sep">/</span> '.join(crumbs) + '</div>'


def _folder_card(folder) -> str:
    url = html.escape(media_url('/folder/', folder.relative))
    name = html.escape(folder.name)
    if folder.is_comic:
        thumb = html.escape(media_url('/video/', folder.cover))
        return f'''
        <a href="{url}" class="card">
            <div class="thumb"><img src="{thumb}" alt="{name}" loading="lazy"></div>
            <div class="label">{name}<div class="meta">Comic &middot; {folder.page_count} pages</div></div>
        </a>'''
    return f'''
        <a href="{url}" class="card">
            <div class="icon">&#128193;</div>
            <div class="label">{name}<div class="meta">Folder</div></div>
        </a>'''


def _media_card(entry) -> str:
    url = html.escape(media_url(KIND_ROUTES[entry.kind], entry.relative))
    name = html.escape(entry.name)
    if entry.kind == MediaKind.IMAGE:
        thumb = html.escape(media_url('/video/', entry.relative))
        return f'''
        <a href="{url}" class="card">
            <div class="thumb"><img src="{thumb}" alt="{name}" loading="lazy"></div>
            <div class="label">{name}</div>
        </a>'''
    return f'''
        <a href="{url}" class="card">
            <div class="icon">{KIND_ICONS[entry.kind]}</div>
            <div class="label">{name}</div>
        </a>'''


def render_listing_page(listing, root_name:str = '') -> str:
    folder_cards = ''.join(_folder_card(f) for f in listing.folders)
    media_cards = ''.join(_media_card(m) for m in listing.media)

    sections = []
    if folder_cards:
        sections.append(f'<h2>Folders</h2>\n<div class="grid">{folder_cards}\n</div>')
    if media_cards:
        sections.append(f'<h2>Media</h2>\n<div class="grid">{media_cards}\n</div>')
    if not sections:
        sections.append('<p class="meta">This folder is empty.</p>')

    title = listing.title or root_name or 'Media'
    body = build_breadcrumbs(listing.relative, root_name) + '\n' + '\n'.join(sections)
    return _page(title, body)


def render_player_page(relative:str, title:str) -> str:
    src = html.escape(media_url('/video/', relative))
    parent = relative.rsplit('/', 1)[0] if '/' in relative else ''
    body = f'''{build_breadcrumbs(parent)}
<div class="viewer">
    <h1>{html.escape(title)}</h1>
    <video src="{src}" controls autoplay preload="metadata"></video>
</div>'''
    return _page(title, body)


def render_comic_page(images, title:str, start_index:int = 0, parent:str = '') -> str:
    urls = [media_url('/video/', rel) for rel in images]
    body = f'''{build_breadcrumbs(parent)}
<div class="viewer">
    <h1>{html.escape(title)}</h1>
    <div class="controls">
        <button id="prev">&larr;</button>
        <span id="counter"></span>
        <button id="next">&rarr;</button>
    </div>
    <img id="page" alt="">
</div>'''
    script = f'''<script>
    const pages = {_json_for_script(urls)};
    let current = {int(start_index)};
    const img = document.getElementById('page');
    const counter = document.getElementById('counter');
    function show(i) {{
        current = Math.max(0, Math.min(pages.length - 1, i));
        img.src = pages[current];
        counter.textContent = (current + 1) + ' / ' + pages.length;
        if (current + 1 < pages.length) {{ new Image().src = pages[current + 1]; }}
    }}
    document.getElementById('prev').onclick = () => show(current - 1);
    document.getElementById('next').onclick = () => show(current + 1);
    img.onclick = () => show(current + 1);
    document.addEventListener('keydown', (e) => {{
        if (e.key === 'ArrowLeft') show(current - 1);
        if (e.key === 'ArrowRight' || e.key === ' ') show(current + 1);
    }});
    show(current);
</script>'''
    return _page(title, body, script)


def render_audio_page(tracks, title:str, start_index:int = 0, parent:str = '') -> str:
    urls = [media_url('/video/', rel) for rel in tracks]
    names = [rel.rsplit('/', 1)[-1] for rel in tracks]
    items = ''.join(f'\n        <li data-index="{i}">{html.escape(n)}</li>' for i, n in enumerate(names))
    body = f'''{build_breadcrumbs(parent)}
<div class="viewer">
    <h1>{html.escape(title)}</h1>
    <audio id="player" controls autoplay></audio>
    <ul class="playlist" id="playlist">{items}
    </ul>
</div>'''
    script = f'''<script>
    const tracks = {_json_for_script(urls)};
    let current = {int(start_index)};
    const player = document.getElementById('player');
    const items = document.querySelectorAll('#playlist li');
    function play(i) {{
        if (i < 0 || i >= tracks.length) return;
        current = i;
        player.src = tracks[current];
        items.forEach((li, idx) => li.classList.toggle('active', idx === current));
        player.play().catch(() => {{}});
    }}
    items.forEach((li) => li.onclick = () => play(parseInt(li.dataset.index, 10)));
    player.addEventListener('ended', () => play(current + 1));
    play(current);
</script>'''
    return _page(title, body, script)


def render_error_page(status_code:int, message:str) -> str:
    body = f'''<h1>Error {status_code}</h1>
<p>{html.escape(message)}</p>'''
    return _page('Error %s' % status_code, body)
