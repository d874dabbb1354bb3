"""
DentalCare Pro Streamlit client.

- api_client.py : HTTP calls to the backend (bearer token)
- session.py    : auth state provider (token + identity check)
- routing.py    : route gate, session + path -> view tree
- layout.py     : sidebar navigation and header around private pages
- pages.py      : one render function per view
"""
