"""
Clients for third-party services.

Contents
--------
- stripe_funcs   : Stripe SDK calls (products, prices, customers, checkout, portal, webhooks)
- supabase_admin : Supabase Auth admin API over httpx
- email_funcs    : Resend and Pica email delivery and templates
- va_api         : VA Forms and VA Facilities proxies
"""
