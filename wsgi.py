"""
WSGI entry point: `gunicorn wsgi:app`.
"""
from leadflow import create_app

app = create_app()

if __name__ == '__main__':
    import os
    # Local dev server; production runs under gunicorn
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', 8080)), debug=os.getenv('FLASK_DEBUG') == '1')
