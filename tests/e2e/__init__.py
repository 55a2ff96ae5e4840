"""
End-to-end browser tests for the Demoblaze storefront.

This package contains Playwright-based browser tests and demonstrates:
- Page Object Model (POM) pattern
- Browser automation best practices
- Handling native alerts and Bootstrap modals
- User flow testing (browse, cart, checkout, accounts)
"""
