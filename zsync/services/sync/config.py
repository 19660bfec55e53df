from __future__ import annotations

GITHUB_API_URL = "https://api.github.com"
GITHUB_ACCEPT = "application/vnd.github.v3+json"

ZENODO_URL = "https://zenodo.org"
ZENODO_SANDBOX_URL = "https://sandbox.zenodo.org"

CODEMETA_JSON = "codemeta.json"
CITATION_CFF = "CITATION.cff"
ZENODO_JSON = ".zenodo.json"

CITATION_DOI_DESCRIPTION = "DOI for this application's record on Zenodo"

METADATA_DIR = "metadata"
RELEASE_ASSETS_DIR = "release-assets"

FILE_NAME_PLACEHOLDER = "${file_name}"
