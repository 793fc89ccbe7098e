"""auth/ -- Registration, login and token issuance for the user service.

Layer rule: auth/ imports only stdlib + third-party libraries, plus core/ for
building its signing config. It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""
