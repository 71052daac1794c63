"""Runtimes without an automatic installer yet."""

from templatr_setup.installers.base import NotImplementedInstaller

MANUAL_INSTALL_PAGES = {
    "ruby": ("Ruby", "https://www.ruby-lang.org/en/downloads/"),
    "php": ("PHP", "https://www.php.net/downloads"),
    "dotnet": (".NET", "https://dot.net/download"),
}


def manual_installers(**kwargs):
    """One NotImplementedInstaller per runtime in MANUAL_INSTALL_PAGES."""
    return [
        NotImplementedInstaller(name, display_name, url, **kwargs)
        for name, (display_name, url) in MANUAL_INSTALL_PAGES.items()
    ]
