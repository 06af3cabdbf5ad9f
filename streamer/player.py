"""
HTML page with an embedded HTML5 video player.
"""

import html

VIDEO_ROUTE = '/video'

PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{title} - Video Player</title>
    <style>
        body {{
            margin: 0;
            padding: 20px;
            background-color: #f0f0f0;
            display: flex;
            flex-direction: column;
            align-items: center;
            font-family: Arial, sans-serif;
        }}
        h1 {{
            color: #333;
            margin-bottom: 20px;
            word-break: break-all;
        }}
        video {{
            width: 90%;
            max-width: 1200px;
            height: auto;
            border-radius: 8px;
            box-shadow: 0 4px 8px rgba(0,0,0,0.2);
        }}
    </style>
</head>
<body>
    <h1>{title}</h1>
    <video controls autoplay preload="metadata">
        <source src="{src}">
        Your browser does not support HTML5 video playback. Please upgrade your browser.
    </video>
</body>
</html>
"""


def render_player_page(filename: str) -> bytes:
    """
    Render the player page for `filename`, encoded as UTF-8.

    The <source> has no type attribute. Browsers skip a source whose type
    they do not recognise, so the stream's Content-Type decides instead.
    """
    page = PAGE_TEMPLATE.format(
        title=html.escape(filename),
        src=VIDEO_ROUTE,
    )
    return page.encode('utf-8')
