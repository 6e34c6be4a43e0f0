"""Built-in integration catalog.

Each entry is the raw form of an ``IntegrationManifest``: provider metadata,
npm dependencies, environment variables, a handful of starter files and
post-install notes. Entries are keyed by category, then provider.
"""

from __future__ import annotations

from typing import Any

BUILTIN_INTEGRATIONS: dict[str, dict[str, dict[str, Any]]] = {
    "auth": {
        "supabase": {
            "version": "1.0.0",
            "description": "Email and OAuth authentication with Supabase Auth",
            "dependencies": {"@supabase/supabase-js": "^2.45.0", "@supabase/ssr": "^0.5.0"},
            "env_vars": [
                {
                    "name": "NEXT_PUBLIC_SUPABASE_URL",
                    "description": "Supabase project URL",
                    "example": "https://your-project.supabase.co",
                },
                {"name": "NEXT_PUBLIC_SUPABASE_ANON_KEY", "description": "Supabase anonymous key"},
            ],
            "files": [
                {
                    "path": "lib/supabase/client.ts",
                    "content": (
                        'import { createBrowserClient } from "@supabase/ssr";\n\n'
                        "export function createClient() {\n"
                        "  return createBrowserClient(\n"
                        "    process.env.NEXT_PUBLIC_SUPABASE_URL!,\n"
                        "    process.env.NEXT_PUBLIC_SUPABASE_ANON_KEY!\n"
                        "  );\n"
                        "}\n"
                    ),
                },
                {
                    "path": "app/login/page.tsx",
                    "content": (
                        '"use client";\n\n'
                        'import { createClient } from "@/lib/supabase/client";\n\n'
                        "export default function LoginPage() {\n"
                        "  const supabase = createClient();\n"
                        "  const signIn = () => supabase.auth.signInWithOAuth({ provider: \"github\" });\n"
                        "  return (\n"
                        '    <main className="flex min-h-screen items-center justify-center">\n'
                        '      <button onClick={signIn} className="rounded-md px-4 py-2">\n'
                        "        Sign in to {{projectName}}\n"
                        "      </button>\n"
                        "    </main>\n"
                        "  );\n"
                        "}\n"
                    ),
                },
            ],
            "requires": ["db"],
            "post_install": "Create a Supabase project and copy its URL and anon key into .env.local.",
        },
        "clerk": {
            "version": "1.0.0",
            "description": "Hosted authentication with Clerk",
            "dependencies": {"@clerk/nextjs": "^5.7.0"},
            "env_vars": [
                {"name": "NEXT_PUBLIC_CLERK_PUBLISHABLE_KEY", "description": "Clerk publishable key"},
                {"name": "CLERK_SECRET_KEY", "description": "Clerk secret key"},
            ],
            "files": [
                {
                    "path": "middleware.ts",
                    "content": (
                        'import { clerkMiddleware } from "@clerk/nextjs/server";\n\n'
                        "export default clerkMiddleware();\n\n"
                        "export const config = {\n"
                        '  matcher: ["/((?!_next|.*\\\\..*).*)", "/(api|trpc)(.*)"],\n'
                        "};\n"
                    ),
                },
                {
                    "path": "app/sign-in/[[...sign-in]]/page.tsx",
                    "content": (
                        'import { SignIn } from "@clerk/nextjs";\n\n'
                        "export default function SignInPage() {\n"
                        "  return <SignIn />;\n"
                        "}\n"
                    ),
                },
            ],
            "post_install": "Create a Clerk application and copy its API keys into .env.local.",
        },
    },
    "payments": {
        "stripe": {
            "version": "1.0.0",
            "description": "Subscriptions and one-off payments with Stripe Checkout",
            "dependencies": {"stripe": "^16.0.0", "@stripe/stripe-js": "^4.0.0"},
            "env_vars": [
                {"name": "STRIPE_SECRET_KEY", "description": "Stripe secret key"},
                {"name": "STRIPE_WEBHOOK_SECRET", "description": "Stripe webhook signing secret"},
                {
                    "name": "NEXT_PUBLIC_STRIPE_PUBLISHABLE_KEY",
                    "description": "Stripe publishable key",
                },
            ],
            "files": [
                {
                    "path": "lib/stripe.ts",
                    "content": (
                        'import Stripe from "stripe";\n\n'
                        "export const stripe = new Stripe(process.env.STRIPE_SECRET_KEY!);\n"
                    ),
                },
                {
                    "path": "app/api/webhooks/stripe/route.ts",
                    "content": (
                        'import { NextResponse } from "next/server";\n'
                        'import { stripe } from "@/lib/stripe";\n\n'
                        "export async function POST(req: Request) {\n"
                        "  const body = await req.text();\n"
                        '  const signature = req.headers.get("stripe-signature")!;\n'
                        "  const event = stripe.webhooks.constructEvent(\n"
                        "    body,\n"
                        "    signature,\n"
                        "    process.env.STRIPE_WEBHOOK_SECRET!\n"
                        "  );\n"
                        "  return NextResponse.json({ received: true, type: event.type });\n"
                        "}\n"
                    ),
                },
            ],
            "requires": ["auth"],
            "post_install": "Run `stripe listen --forward-to localhost:3000/api/webhooks/stripe` to receive webhooks locally.",
        },
    },
    "email": {
        "resend": {
            "version": "1.0.0",
            "description": "Transactional email with Resend",
            "dependencies": {"resend": "^4.0.0"},
            "env_vars": [
                {"name": "RESEND_API_KEY", "description": "Resend API key"},
                {
                    "name": "EMAIL_FROM",
                    "description": "Default sender address",
                    "required": False,
                    "example": "hello@example.com",
                },
            ],
            "files": [
                {
                    "path": "lib/email.ts",
                    "content": (
                        'import { Resend } from "resend";\n\n'
                        "export const resend = new Resend(process.env.RESEND_API_KEY);\n"
                    ),
                },
            ],
            "post_install": "Verify your sending domain in the Resend dashboard.",
        },
    },
    "db": {
        "supabase": {
            "version": "1.0.0",
            "description": "Postgres database through Supabase",
            "dependencies": {"@supabase/supabase-js": "^2.45.0"},
            "env_vars": [
                {"name": "SUPABASE_SERVICE_ROLE_KEY", "description": "Supabase service role key"},
            ],
            "files": [
                {
                    "path": "lib/supabase/admin.ts",
                    "content": (
                        'import { createClient } from "@supabase/supabase-js";\n\n'
                        "export const supabaseAdmin = createClient(\n"
                        "  process.env.NEXT_PUBLIC_SUPABASE_URL!,\n"
                        "  process.env.SUPABASE_SERVICE_ROLE_KEY!\n"
                        ");\n"
                    ),
                },
            ],
            "post_install": "Apply your schema with `supabase db push`.",
        },
    },
    "ai": {
        "openai": {
            "version": "1.0.0",
            "description": "Chat completions and embeddings with OpenAI",
            "dependencies": {"openai": "^4.60.0", "ai": "^3.4.0"},
            "env_vars": [{"name": "OPENAI_API_KEY", "description": "OpenAI API key"}],
            "files": [
                {
                    "path": "lib/openai.ts",
                    "content": (
                        'import OpenAI from "openai";\n\n'
                        "export const openai = new OpenAI({ apiKey: process.env.OPENAI_API_KEY });\n"
                    ),
                },
                {
                    "path": "app/api/chat/route.ts",
                    "content": (
                        'import { openai } from "@/lib/openai";\n\n'
                        "export async function POST(req: Request) {\n"
                        "  const { messages } = await req.json();\n"
                        "  const completion = await openai.chat.completions.create({\n"
                        '    model: "gpt-4o-mini",\n'
                        "    messages,\n"
                        "  });\n"
                        "  return Response.json(completion.choices[0].message);\n"
                        "}\n"
                    ),
                },
            ],
            "post_install": "Set a usage limit on your OpenAI account before going live.",
        },
    },
    "analytics": {
        "posthog": {
            "version": "1.0.0",
            "description": "Product analytics with PostHog",
            "dependencies": {"posthog-js": "^1.160.0"},
            "env_vars": [
                {"name": "NEXT_PUBLIC_POSTHOG_KEY", "description": "PostHog project API key"},
                {
                    "name": "NEXT_PUBLIC_POSTHOG_HOST",
                    "description": "PostHog host",
                    "required": False,
                    "example": "https://us.i.posthog.com",
                },
            ],
            "files": [
                {
                    "path": "lib/analytics.ts",
                    "content": (
                        'import posthog from "posthog-js";\n\n'
                        "export function initAnalytics() {\n"
                        "  posthog.init(process.env.NEXT_PUBLIC_POSTHOG_KEY!, {\n"
                        "    api_host: process.env.NEXT_PUBLIC_POSTHOG_HOST,\n"
                        "  });\n"
                        "}\n"
                    ),
                },
            ],
        },
    },
    "monitoring": {
        "sentry": {
            "version": "1.0.0",
            "description": "Error tracking with Sentry",
            "dependencies": {"@sentry/nextjs": "^8.30.0"},
            "env_vars": [
                {"name": "NEXT_PUBLIC_SENTRY_DSN", "description": "Sentry DSN"},
                {"name": "SENTRY_AUTH_TOKEN", "description": "Source map upload token", "required": False},
            ],
            "files": [
                {
                    "path": "sentry.client.config.ts",
                    "content": (
                        'import * as Sentry from "@sentry/nextjs";\n\n'
                        "Sentry.init({\n"
                        "  dsn: process.env.NEXT_PUBLIC_SENTRY_DSN,\n"
                        "  tracesSampleRate: 0.1,\n"
                        "});\n"
                    ),
                },
            ],
            "post_install": "Run `npx @sentry/wizard -i nextjs` to finish source map setup.",
        },
    },
}


def catalog_providers() -> dict[str, list[str]]:
    """Return ``{category: [provider, ...]}`` for every built-in integration."""
    return {category: sorted(providers) for category, providers in BUILTIN_INTEGRATIONS.items()}
