from __future__ import annotations

from PySide6.QtCore import Qt
from PySide6.QtGui import QAction
from PySide6.QtWidgets import QMainWindow, QTabWidget, QToolBar

from cta.core.config import Config
from cta.db.manager import DatabaseManager
from cta.db.services import ContentService, TemplateService, TenantService

from .catalog_tab import CatalogTab
from .settings_tab import SettingsTab
from .tenant_tab import TenantTab


class MainWindow(QMainWindow):
    """ The admin window: content catalog, tenants and settings. """

    def __init__(self, cfg: Config, dbm: DatabaseManager) -> None:
        super().__init__()
        self.setWindowTitle("Content Template Admin")
        self.resize(1200, 800)

        self.config = cfg
        self.dbm = dbm
        self.contents = ContentService(self.dbm)
        self.templates = TemplateService(self.dbm)
        self.tenants = TenantService(self.dbm)

        self._tabs = QTabWidget()
        self.setCentralWidget(self._tabs)

        # Tabs
        self.catalog_tab = CatalogTab(self.contents, self.templates, cfg=self.config)
        self.tenant_tab = TenantTab(self.tenants, self.contents, self.templates)
        self.settings_tab = SettingsTab(self.dbm, self.config)
        self.catalog_tab.catalogChanged.connect(self.tenant_tab.reload)
        self.settings_tab.reloadedDatabase.connect(self.reload)

        self._tabs.addTab(self.catalog_tab, "Contents")
        self._tabs.addTab(self.tenant_tab, "Tenants")
        self._tabs.addTab(self.settings_tab, "Settings")
        self._tabs.currentChanged.connect(self._on_tab_changed)

        # Toolbar actions
        tb = QToolBar("Main")
        tb.setMovable(False)
        self.addToolBar(Qt.TopToolBarArea, tb)
        act_reload = QAction("Reload", self)
        act_reload.triggered.connect(self.reload)
        tb.addAction(act_reload)

        geometry = self.config.ui.geometry
        if geometry.get("w") and geometry.get("h"):
            self.setGeometry(geometry.get("x", 100), geometry.get("y", 100), geometry["w"], geometry["h"])

    def reload(self) -> None:
        self.catalog_tab.reload()
        self.tenant_tab.reload()

    def _on_tab_changed(self, index: int) -> None:
        # Template usage counts change when tenant mappings do
        if self._tabs.widget(index) is self.catalog_tab:
            self.catalog_tab.reload_templates()

    def closeEvent(self, event, /):
        """ Remember the window geometry. """
        g = self.geometry()
        self.config.ui.geometry = {"x": g.x(), "y": g.y(), "w": g.width(), "h": g.height()}
        super().closeEvent(event)
